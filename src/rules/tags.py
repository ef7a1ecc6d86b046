"""Parsing of ``key=value[,key=value...]`` tag expressions."""

from __future__ import annotations

import re

from src.core.types import TagSet
from src.rules.exceptions import ParseError

_TAG_PATTERN = re.compile(r"^\s*([\w./-]+)\s*=\s*(\S(?:.*\S)?)\s*$")


def parse_tags(expr: str) -> TagSet:
    """Parse a comma-separated tag expression into a TagSet.

    An empty or blank expression yields an empty TagSet.

    Raises:
        ParseError: A pair is missing ``=``, has an empty key or value,
            or repeats a key.
    """
    tags: TagSet = {}
    if not expr.strip():
        return tags
    for pair in expr.split(","):
        match = _TAG_PATTERN.match(pair)
        if match is None:
            raise ParseError(f"invalid tag: {pair.strip()!r}")
        key, value = match.group(1), match.group(2)
        if key in tags:
            raise ParseError(f"duplicate tag: {key}")
        tags[key] = value
    return tags
