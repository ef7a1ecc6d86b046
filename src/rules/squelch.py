"""Tag-key-to-regex suppression of alert instances."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping

from src.core.types import TagSet
from src.rules.exceptions import RegexError
from src.rules.tags import parse_tags


class Squelch:
    """One suppression rule: every key must exist and its regex must match."""

    def __init__(self, patterns: Mapping[str, re.Pattern[str]] | None = None) -> None:
        self._patterns: dict[str, re.Pattern[str]] = dict(patterns or {})

    @classmethod
    def from_expr(cls, expr: str) -> Squelch:
        """Build a squelch from ``key=regex,...``.

        Raises:
            ParseError: Malformed tag syntax.
            RegexError: Any value fails to compile.
        """
        patterns: dict[str, re.Pattern[str]] = {}
        for key, value in parse_tags(expr).items():
            try:
                patterns[key] = re.compile(value)
            except re.error as exc:
                raise RegexError(f"invalid squelch regex for {key}={value}: {exc}") from exc
        return cls(patterns)

    @property
    def patterns(self) -> dict[str, re.Pattern[str]]:
        return dict(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def squelched(self, tags: TagSet) -> bool:
        # An empty rule would otherwise suppress everything.
        if not self._patterns:
            return False
        for key, pattern in self._patterns.items():
            value = tags.get(key)
            if value is None or pattern.search(value) is None:
                return False
        return True


class SquelchList:
    """Ordered squelch rules, OR-ed together."""

    def __init__(self, squelches: list[Squelch] | None = None) -> None:
        self._squelches: list[Squelch] = list(squelches or [])

    def add(self, expr: str) -> None:
        """Parse *expr* and append it; nothing is appended on error."""
        self._squelches.append(Squelch.from_expr(expr))

    def squelched(self, tags: TagSet) -> bool:
        return any(sq.squelched(tags) for sq in self._squelches)

    def __len__(self) -> int:
        return len(self._squelches)

    def __iter__(self) -> Iterator[Squelch]:
        return iter(self._squelches)
