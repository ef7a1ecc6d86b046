"""Rule text parser — turns the canonical rule text into a RuleSet.

Grammar::

    # comment
    $var = value

    notification ops {
        email = ops@example.com
        next = oncall
        timeout = 30m
    }

    lookup notify_by_host {
        entry host=web01 {
            crit = ops,oncall
        }
    }

    alert cpu.high {
        crit = avg(q("sum:cpu{host=*}", "5m", "")) > 90
        squelch = host=^test
        critNotification = ops
        critNotification = lookup("notify_by_host", "crit")
    }

Values wrapped in backticks may span several lines. ``$name`` references
are expanded from section-local ``$name = ...`` pairs first, then from
global variables. Template bodies and notification bodies are kept raw.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from email.utils import getaddresses
from urllib.parse import urlparse

import structlog

from src.core.hashing import gen_hash
from src.core.types import NativeLocator
from src.rules.exceptions import ParseError
from src.rules.squelch import SquelchList
from src.rules.tags import parse_tags
from src.rules.types import (
    Alert,
    EntityType,
    Entry,
    Lookup,
    Macro,
    Notification,
    NotificationBinding,
    RuleSet,
    Template,
)

logger = structlog.stdlib.get_logger()

_SECTION_START = re.compile(r"^(\w+)\s+([^\s{}]+)\s*\{$")
_ENTRY_START = re.compile(r"^entry\s+(.+?)\s*\{$")
_PAIR = re.compile(r"^(\$?[\w.-]+)\s*=\s*(.*)$")
_VAR_REF = re.compile(r"\$(\w+)")
_LOOKUP_CALL = re.compile(r'^lookup\(\s*"([^"]+)"\s*,\s*"([^"]+)"\s*\)$')
_DURATION = re.compile(r"^(\d+(?:\.\d+)?)([smhdw])$")

_DURATION_UNITS: dict[str, float] = {
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
    "d": 86400.0,
    "w": 604800.0,
}

_REPEATABLE_ALERT_KEYS = {"squelch", "critNotification", "warnNotification", "macro"}


# ── Scanning ────────────────────────────────────────────────────


@dataclass
class Pair:
    """A ``key = value`` line (or backtick block) with its first line number."""

    key: str
    value: str
    line: int


@dataclass
class EntryBlock:
    """An ``entry <tags> { ... }`` block inside a lookup."""

    definition: str
    line: int
    pairs: list[Pair] = field(default_factory=list)


@dataclass
class RawSection:
    """A top-level ``<type> <name> { ... }`` block as it appears in the text."""

    type: str
    name: str
    start_line: int
    end_line: int
    text: str
    pairs: list[Pair] = field(default_factory=list)
    entries: list[EntryBlock] = field(default_factory=list)

    @property
    def locator(self) -> NativeLocator:
        return NativeLocator(start_line=self.start_line, end_line=self.end_line)


@dataclass
class ScannedText:
    """Global variables and sections of a rule text, in source order."""

    vars: list[Pair] = field(default_factory=list)
    sections: list[RawSection] = field(default_factory=list)

    def find(self, entity_type: str, name: str) -> RawSection | None:
        for section in self.sections:
            if section.type == entity_type and section.name == name:
                return section
        return None


def _is_skippable(line: str) -> bool:
    return not line or line.startswith("#")


def _read_pair(lines: list[str], idx: int) -> tuple[Pair, int]:
    """Read the pair starting at ``lines[idx]``; return it and the next index."""
    line_no = idx + 1
    match = _PAIR.match(lines[idx].strip())
    if match is None:
        raise ParseError(f"expected key = value, got {lines[idx].strip()!r}", line_no)
    key, value = match.group(1), match.group(2).strip()
    if not value.startswith("`"):
        return Pair(key, value, line_no), idx + 1

    body = value[1:]
    if body.endswith("`"):
        return Pair(key, body[:-1], line_no), idx + 1
    parts = [body]
    idx += 1
    while idx < len(lines):
        current = lines[idx].rstrip()
        if current.endswith("`"):
            parts.append(current[:-1])
            return Pair(key, "\n".join(parts).strip("\n"), line_no), idx + 1
        parts.append(current)
        idx += 1
    raise ParseError(f"unterminated backtick value for {key}", line_no)


def scan(text: str) -> ScannedText:
    """Split rule text into global variables and raw sections.

    Raises:
        ParseError: Unbalanced braces, stray lines or unterminated values.
    """
    lines = text.splitlines()
    scanned = ScannedText()
    idx = 0
    while idx < len(lines):
        stripped = lines[idx].strip()
        if _is_skippable(stripped):
            idx += 1
            continue
        if stripped.startswith("$"):
            pair, idx = _read_pair(lines, idx)
            scanned.vars.append(pair)
            continue
        match = _SECTION_START.match(stripped)
        if match is None:
            raise ParseError(f"unexpected line {stripped!r}", idx + 1)
        section, idx = _scan_section(lines, idx, match.group(1), match.group(2))
        scanned.sections.append(section)
    return scanned


def _scan_section(
    lines: list[str], idx: int, entity_type: str, name: str,
) -> tuple[RawSection, int]:
    start = idx
    section = RawSection(
        type=entity_type, name=name, start_line=start + 1, end_line=start + 1, text="",
    )
    entry: EntryBlock | None = None
    idx += 1
    while idx < len(lines):
        stripped = lines[idx].strip()
        if _is_skippable(stripped):
            idx += 1
            continue
        if stripped == "}":
            if entry is not None:
                section.entries.append(entry)
                entry = None
                idx += 1
                continue
            section.end_line = idx + 1
            section.text = "\n".join(lines[start : idx + 1])
            return section, idx + 1
        entry_match = _ENTRY_START.match(stripped)
        if entry_match is not None:
            if entry is not None:
                raise ParseError("nested entry blocks are not allowed", idx + 1)
            entry = EntryBlock(definition=entry_match.group(1), line=idx + 1)
            idx += 1
            continue
        pair, idx = _read_pair(lines, idx)
        if entry is not None:
            entry.pairs.append(pair)
        else:
            section.pairs.append(pair)
    raise ParseError(f"unterminated {entity_type} {name}", start + 1)


# ── Value helpers ───────────────────────────────────────────────


def _expand(value: str, scopes: list[dict[str, str]], line: int) -> str:
    def _sub(match: re.Match[str]) -> str:
        name = match.group(1)
        for scope in scopes:
            if name in scope:
                return scope[name]
        raise ParseError(f"unknown variable ${name}", line)

    return _VAR_REF.sub(_sub, value)


def parse_duration(value: str, line: int | None = None) -> float:
    """Parse ``<number><s|m|h|d|w>`` into seconds."""
    match = _DURATION.match(value.strip())
    if match is None:
        raise ParseError(f"invalid duration {value!r}", line)
    return float(match.group(1)) * _DURATION_UNITS[match.group(2)]


def _parse_bool(value: str, line: int) -> bool:
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ParseError(f"invalid boolean {value!r}", line)


def _parse_url(value: str, line: int) -> str:
    try:
        parsed = urlparse(value)
    except ValueError as exc:
        raise ParseError(f"invalid url {value!r}: {exc}", line) from exc
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ParseError(f"invalid url {value!r}", line)
    return value


def _parse_emails(value: str, line: int) -> list[str]:
    addresses: list[str] = []
    for _, addr in getaddresses([value]):
        if "@" not in addr:
            raise ParseError(f"invalid email address in {value!r}", line)
        addresses.append(addr)
    if not addresses:
        raise ParseError("email requires at least one address", line)
    return addresses


def _local_vars(section: RawSection, global_vars: dict[str, str]) -> dict[str, str]:
    local: dict[str, str] = {}
    for pair in section.pairs:
        if pair.key.startswith("$"):
            local[pair.key[1:]] = _expand(pair.value, [local, global_vars], pair.line)
    return local


# ── Entity builders ─────────────────────────────────────────────


def _build_macro(section: RawSection) -> Macro:
    if section.entries:
        raise ParseError("entry blocks are only valid in lookups", section.entries[0].line)
    for pair in section.pairs:
        if pair.key == "macro":
            raise ParseError("macros cannot reference other macros", pair.line)
    return Macro(
        name=section.name,
        text=section.text,
        pairs=[(p.key, p.value) for p in section.pairs],
        locator=section.locator,
    )


def _build_template(section: RawSection) -> Template:
    if section.entries:
        raise ParseError("entry blocks are only valid in lookups", section.entries[0].line)
    fields: dict[str, str] = {}
    tvars: dict[str, str] = {}
    for pair in section.pairs:
        if pair.key.startswith("$"):
            tvars[pair.key[1:]] = pair.value
        elif pair.key in ("subject", "body"):
            if pair.key in fields:
                raise ParseError(f"duplicate key {pair.key}", pair.line)
            fields[pair.key] = pair.value
        else:
            raise ParseError(f"unknown template key {pair.key}", pair.line)
    return Template(
        name=section.name,
        text=section.text,
        subject=fields.get("subject", ""),
        body=fields.get("body", ""),
        vars=tvars,
        locator=section.locator,
    )


def _build_lookup(section: RawSection, global_vars: dict[str, str]) -> Lookup:
    if section.pairs:
        raise ParseError("lookups may only contain entry blocks", section.pairs[0].line)
    tag_keys: list[str] = []
    entries: list[Entry] = []
    for block in section.entries:
        guard = parse_tags(block.definition)
        if not guard:
            raise ParseError("entry requires at least one tag", block.line)
        if not entries:
            tag_keys = list(guard)
        elif set(guard) != set(tag_keys):
            raise ParseError(
                f"entry tags {sorted(guard)} differ from lookup tags {sorted(tag_keys)}",
                block.line,
            )
        values: dict[str, str] = {}
        for pair in block.pairs:
            if pair.key in values:
                raise ParseError(f"duplicate key {pair.key}", pair.line)
            values[pair.key] = _expand(pair.value, [global_vars], pair.line)
        entries.append(Entry(definition=block.definition, tags=guard, values=values))
    return Lookup(
        name=section.name,
        tags=tag_keys,
        entries=entries,
        text=section.text,
        locator=section.locator,
    )


def _build_notification(section: RawSection, global_vars: dict[str, str]) -> Notification:
    if section.entries:
        raise ParseError("entry blocks are only valid in lookups", section.entries[0].line)
    local = _local_vars(section, global_vars)
    scopes = [local, global_vars]
    kwargs: dict[str, object] = {}
    seen: set[str] = set()
    timeout_line = 0
    for pair in section.pairs:
        if pair.key.startswith("$"):
            continue
        if pair.key in seen:
            raise ParseError(f"duplicate key {pair.key}", pair.line)
        seen.add(pair.key)
        if pair.key == "body":
            kwargs["body"] = pair.value
            continue
        value = _expand(pair.value, scopes, pair.line)
        if pair.key == "email":
            kwargs["email"] = _parse_emails(value, pair.line)
        elif pair.key in ("post", "get"):
            kwargs[pair.key] = _parse_url(value, pair.line)
        elif pair.key == "print":
            kwargs["print"] = _parse_bool(value, pair.line)
        elif pair.key == "next":
            kwargs["next_name"] = value
        elif pair.key == "timeout":
            kwargs["timeout"] = parse_duration(value, pair.line)
            timeout_line = pair.line
        elif pair.key == "contentType":
            kwargs["content_type"] = value
        elif pair.key == "runOnActions":
            kwargs["run_on_actions"] = _parse_bool(value, pair.line)
        elif pair.key == "useBody":
            kwargs["use_body"] = _parse_bool(value, pair.line)
        else:
            raise ParseError(f"unknown notification key {pair.key}", pair.line)
    if "timeout" in kwargs and "next_name" not in kwargs:
        raise ParseError("timeout specified without next", timeout_line)
    return Notification(
        name=section.name,
        text=section.text,
        vars=local,
        locator=section.locator,
        **kwargs,  # type: ignore[arg-type]
    )


def _add_binding_value(
    value: str,
    line: int,
    static: dict[str, Notification],
    lookups: dict[str, Lookup],
    notifications: dict[str, Notification],
    all_lookups: dict[str, Lookup],
) -> None:
    call = _LOOKUP_CALL.match(value.strip())
    if call is not None:
        table, key = call.group(1), call.group(2)
        lookup = all_lookups.get(table)
        if lookup is None:
            raise ParseError(f"unknown lookup {table}", line)
        lookups[key] = lookup
        return
    for raw_name in value.split(","):
        name = raw_name.strip()
        if not name:
            continue
        notification = notifications.get(name)
        if notification is None:
            raise ParseError(f"unknown notification {name}", line)
        static[name] = notification


def _build_alert(
    section: RawSection,
    global_vars: dict[str, str],
    macros: dict[str, Macro],
    templates: dict[str, Template],
    notifications: dict[str, Notification],
    lookups: dict[str, Lookup],
) -> Alert:
    if section.entries:
        raise ParseError("entry blocks are only valid in lookups", section.entries[0].line)

    # Macro pairs come first so that the alert's own values override them.
    macro_pairs: list[Pair] = []
    own_pairs: list[Pair] = []
    for pair in section.pairs:
        if pair.key != "macro":
            own_pairs.append(pair)
            continue
        macro = macros.get(pair.value.strip())
        if macro is None:
            raise ParseError(f"unknown macro {pair.value.strip()}", pair.line)
        macro_pairs.extend(Pair(k, v, pair.line) for k, v in macro.pairs)

    singles: dict[str, Pair] = {}
    repeated: list[Pair] = []
    local: dict[str, str] = {}
    for is_own, group in ((False, macro_pairs), (True, own_pairs)):
        own_keys: set[str] = set()
        for pair in group:
            if pair.key in _REPEATABLE_ALERT_KEYS:
                repeated.append(pair)
                continue
            if is_own:
                if pair.key in own_keys:
                    raise ParseError(f"duplicate key {pair.key}", pair.line)
                own_keys.add(pair.key)
            singles[pair.key] = pair
            if pair.key.startswith("$"):
                local[pair.key[1:]] = _expand(pair.value, [local, global_vars], pair.line)

    scopes = [local, global_vars]
    kwargs: dict[str, object] = {}
    for key, pair in singles.items():
        if key.startswith("$"):
            continue
        value = _expand(pair.value, scopes, pair.line)
        if key in ("crit", "warn", "depends"):
            kwargs[key] = value
        elif key == "template":
            if value not in templates:
                raise ParseError(f"unknown template {value}", pair.line)
            kwargs["template_name"] = value
        elif key == "unknown":
            kwargs["unknown"] = parse_duration(value, pair.line)
        elif key == "maxLogFrequency":
            kwargs["max_log_frequency"] = parse_duration(value, pair.line)
        elif key == "ignoreUnknown":
            kwargs["ignore_unknown"] = _parse_bool(value, pair.line)
        elif key == "unknownIsNormal":
            kwargs["unknowns_normal"] = _parse_bool(value, pair.line)
        elif key == "unjoinedOk":
            kwargs["unjoined_ok"] = _parse_bool(value, pair.line)
        elif key == "log":
            kwargs["log"] = _parse_bool(value, pair.line)
        elif key == "runEvery":
            if not (value.isascii() and value.isdigit()) or int(value) <= 0:
                raise ParseError(f"runEvery must be a positive integer, got {value!r}", pair.line)
            kwargs["run_every"] = int(value)
        else:
            raise ParseError(f"unknown alert key {key}", pair.line)
    if not kwargs.get("crit") and not kwargs.get("warn"):
        raise ParseError(f"alert {section.name} requires crit or warn", section.start_line)

    squelch = SquelchList()
    raw_squelch: list[str] = []
    crit_static: dict[str, Notification] = {}
    crit_lookups: dict[str, Lookup] = {}
    warn_static: dict[str, Notification] = {}
    warn_lookups: dict[str, Lookup] = {}
    for pair in repeated:
        value = _expand(pair.value, scopes, pair.line)
        if pair.key == "squelch":
            try:
                squelch.add(value)
            except ParseError as exc:
                raise type(exc)(str(exc), pair.line) from exc
            raw_squelch.append(value)
        elif pair.key == "critNotification":
            _add_binding_value(
                value, pair.line, crit_static, crit_lookups, notifications, lookups,
            )
        elif pair.key == "warnNotification":
            _add_binding_value(
                value, pair.line, warn_static, warn_lookups, notifications, lookups,
            )

    return Alert(
        name=section.name,
        text=section.text,
        vars=local,
        squelch=squelch,
        raw_squelch=raw_squelch,
        crit_notification=NotificationBinding(
            notifications=crit_static, lookups=crit_lookups,
        ),
        warn_notification=NotificationBinding(
            notifications=warn_static, lookups=warn_lookups,
        ),
        locator=section.locator,
        **kwargs,  # type: ignore[arg-type]
    )


# ── Entry point ─────────────────────────────────────────────────


def parse_rules(text: str) -> RuleSet:
    """Parse the complete rule text.

    Raises:
        ParseError: Any syntax or reference error; the first one found.
    """
    scanned = scan(text)

    global_vars: dict[str, str] = {}
    for pair in scanned.vars:
        name = pair.key[1:]
        if name in global_vars:
            raise ParseError(f"duplicate variable ${name}", pair.line)
        global_vars[name] = _expand(pair.value, [global_vars], pair.line)

    by_type: dict[EntityType, list[RawSection]] = {t: [] for t in EntityType}
    seen: set[tuple[str, str]] = set()
    for section in scanned.sections:
        try:
            entity_type = EntityType(section.type)
        except ValueError:
            raise ParseError(f"unknown section type {section.type}", section.start_line) from None
        if (section.type, section.name) in seen:
            raise ParseError(f"duplicate {section.type} {section.name}", section.start_line)
        seen.add((section.type, section.name))
        by_type[entity_type].append(section)

    macros = {s.name: _build_macro(s) for s in by_type[EntityType.MACRO]}
    templates = {s.name: _build_template(s) for s in by_type[EntityType.TEMPLATE]}
    lookups = {s.name: _build_lookup(s, global_vars) for s in by_type[EntityType.LOOKUP]}
    notifications = {
        s.name: _build_notification(s, global_vars) for s in by_type[EntityType.NOTIFICATION]
    }
    for notification in notifications.values():
        if notification.next_name is not None and notification.next_name not in notifications:
            line = notification.locator.start_line if notification.locator else None
            raise ParseError(
                f"notification {notification.name} has unknown next {notification.next_name}",
                line,
            )
    alerts = {
        s.name: _build_alert(s, global_vars, macros, templates, notifications, lookups)
        for s in by_type[EntityType.ALERT]
    }

    ruleset = RuleSet(
        raw_text=text,
        hash=gen_hash(text),
        vars=global_vars,
        alerts=alerts,
        notifications=notifications,
        lookups=lookups,
        templates=templates,
        macros=macros,
    )
    logger.debug(
        "rules_parsed",
        alerts=len(alerts),
        notifications=len(notifications),
        lookups=len(lookups),
        hash=ruleset.hash,
    )
    return ruleset
