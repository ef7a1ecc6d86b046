"""Rule configuration — parsing, squelches and lookup tables."""

from src.rules.exceptions import (
    ParseError,
    RegexError,
    RuleConfError,
    UnknownEntityError,
)
from src.rules.lookup import entry_matches, resolve
from src.rules.parser import parse_duration, parse_rules, scan
from src.rules.squelch import Squelch, SquelchList
from src.rules.tags import parse_tags
from src.rules.types import (
    Alert,
    EntityType,
    Entry,
    Lookup,
    Macro,
    Notification,
    NotificationBinding,
    NotificationSet,
    RuleSet,
    Template,
)

__all__ = [
    "Alert",
    "EntityType",
    "Entry",
    "Lookup",
    "Macro",
    "Notification",
    "NotificationBinding",
    "NotificationSet",
    "ParseError",
    "RegexError",
    "RuleConfError",
    "RuleSet",
    "Squelch",
    "SquelchList",
    "Template",
    "UnknownEntityError",
    "entry_matches",
    "parse_duration",
    "parse_rules",
    "parse_tags",
    "resolve",
    "scan",
]
