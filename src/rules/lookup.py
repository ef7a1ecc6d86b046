"""Lookup table resolution; the first matching entry wins."""

from __future__ import annotations

from src.core.types import TagSet
from src.rules.types import Entry, Lookup


def entry_matches(lookup: Lookup, entry: Entry, tags: TagSet) -> bool:
    """True when every tag key declared on *lookup* agrees between *entry* and *tags*."""
    for key in lookup.tags:
        expected = entry.tags.get(key)
        if expected is None or tags.get(key) != expected:
            return False
    return True


def resolve(lookup: Lookup, tags: TagSet, key: str) -> tuple[str, bool]:
    """Return ``(value, found)`` for *key* from the first entry matching *tags*.

    Resolution stops at the first matching entry even when that entry does
    not bind *key*; entries are never merged.
    """
    for entry in lookup.entries:
        if not entry_matches(lookup, entry, tags):
            continue
        value = entry.values.get(key)
        if value is None:
            return "", False
        return value, True
    return "", False
