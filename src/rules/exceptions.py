"""Exception hierarchy for rule configuration parsing and validation."""

from __future__ import annotations


class RuleConfError(Exception):
    """Base exception for all rule configuration errors."""


class ParseError(RuleConfError):
    """Malformed tag expression, entity or lookup syntax."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class RegexError(ParseError):
    """Invalid regular expression in a squelch value."""


class UnknownEntityError(RuleConfError):
    """A named alert, notification or lookup does not exist."""
