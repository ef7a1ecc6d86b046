"""Tests for the rule text parser."""

from __future__ import annotations

import pytest

from src.core.hashing import gen_hash
from src.rules.exceptions import ParseError, RegexError
from src.rules.parser import parse_duration, parse_rules, scan

RULES = """\
# shared settings
$team = ops@example.com

template generic {
    subject = `{{.Alert.Name}} is {{.Status}}`
    body = `<p>
{{ $x := .Alert.Name }} {{$x}}
}
</p>`
}

notification ops {
    email = $team
    next = oncall
    timeout = 30m
}

notification oncall {
    post = https://pager.example.com/hook
    body = {"host": "{{.Group.host}}"}
    contentType = application/json
}

notification audit {
    print = true
}

lookup notify_by_host {
    entry host=web01 {
        crit = oncall
    }
    entry host=db01 {
        crit = audit, missing
    }
}

macro defaults {
    unknown = 1h
    ignoreUnknown = true
}

alert cpu.high {
    macro = defaults
    template = generic
    $threshold = 90
    crit = avg(cpu) > $threshold
    warn = avg(cpu) > 80
    squelch = host=^test
    squelch = env=staging
    critNotification = ops
    critNotification = lookup("notify_by_host", "crit")
    warnNotification = audit
    unknown = 2h
    runEvery = 5
}
"""


class TestScan:
    def test_sections_and_vars(self) -> None:
        scanned = scan(RULES)
        assert [p.key for p in scanned.vars] == ["$team"]
        assert [(s.type, s.name) for s in scanned.sections] == [
            ("template", "generic"),
            ("notification", "ops"),
            ("notification", "oncall"),
            ("notification", "audit"),
            ("lookup", "notify_by_host"),
            ("macro", "defaults"),
            ("alert", "cpu.high"),
        ]

    def test_section_text_and_lines(self) -> None:
        section = scan(RULES).find("notification", "ops")
        assert section is not None
        lines = RULES.splitlines()
        assert section.text == "\n".join(lines[section.start_line - 1 : section.end_line])
        assert section.text.startswith("notification ops {")
        assert section.text.endswith("}")

    def test_backtick_block_hides_braces(self) -> None:
        section = scan(RULES).find("template", "generic")
        assert section is not None
        body = next(p.value for p in section.pairs if p.key == "body")
        assert "}" in body
        assert body.startswith("<p>")
        assert body.endswith("</p>")

    def test_find_missing(self) -> None:
        assert scan(RULES).find("alert", "nope") is None

    def test_unterminated_section(self) -> None:
        with pytest.raises(ParseError, match="unterminated"):
            scan("alert a {\n    crit = 1\n")

    def test_unterminated_backtick(self) -> None:
        with pytest.raises(ParseError, match="backtick"):
            scan("template t {\n    body = `abc\n}\n")

    def test_stray_line(self) -> None:
        with pytest.raises(ParseError, match="line 1"):
            scan("crit = 1\n")

    def test_nested_entry_rejected(self) -> None:
        text = "lookup l {\n    entry a=b {\n    entry a=c {\n    }\n    }\n}\n"
        with pytest.raises(ParseError, match="nested"):
            scan(text)


class TestParseRules:
    def test_hash_and_text(self) -> None:
        rs = parse_rules(RULES)
        assert rs.raw_text == RULES
        assert rs.hash == gen_hash(RULES)

    def test_empty_text(self) -> None:
        rs = parse_rules("")
        assert rs.alerts == {}
        assert rs.hash == gen_hash("")

    def test_global_var_expanded(self) -> None:
        rs = parse_rules(RULES)
        assert rs.vars == {"team": "ops@example.com"}
        assert rs.notifications["ops"].email == ["ops@example.com"]

    def test_notification_fields(self) -> None:
        rs = parse_rules(RULES)
        ops = rs.notifications["ops"]
        assert ops.next_name == "oncall"
        assert ops.timeout == 1800.0
        oncall = rs.notifications["oncall"]
        assert oncall.post == "https://pager.example.com/hook"
        assert oncall.content_type == "application/json"
        assert oncall.body == '{"host": "{{.Group.host}}"}'
        assert oncall.next_name is None
        assert rs.notifications["audit"].print is True

    def test_template_kept_raw(self) -> None:
        tpl = parse_rules(RULES).templates["generic"]
        assert tpl.subject == "{{.Alert.Name}} is {{.Status}}"
        assert "{{ $x := .Alert.Name }}" in tpl.body

    def test_lookup(self) -> None:
        lk = parse_rules(RULES).lookups["notify_by_host"]
        assert lk.tags == ["host"]
        assert [e.definition for e in lk.entries] == ["host=web01", "host=db01"]
        assert lk.entries[0].tags == {"host": "web01"}
        assert lk.entries[1].values == {"crit": "audit, missing"}

    def test_alert(self) -> None:
        rs = parse_rules(RULES)
        alert = rs.alerts["cpu.high"]
        assert alert.crit == "avg(cpu) > 90"
        assert alert.warn == "avg(cpu) > 80"
        assert alert.template_name == "generic"
        assert alert.vars == {"threshold": "90"}
        assert alert.run_every == 5
        assert alert.raw_squelch == ["host=^test", "env=staging"]
        assert len(alert.squelch) == 2

    def test_alert_overrides_macro(self) -> None:
        alert = parse_rules(RULES).alerts["cpu.high"]
        assert alert.unknown == 7200.0
        assert alert.ignore_unknown is True

    def test_alert_bindings_share_registry_objects(self) -> None:
        rs = parse_rules(RULES)
        alert = rs.alerts["cpu.high"]
        assert list(alert.crit_notification.notifications) == ["ops"]
        assert alert.crit_notification.notifications["ops"] is rs.notifications["ops"]
        assert alert.crit_notification.lookups["crit"] is rs.lookups["notify_by_host"]
        assert list(alert.warn_notification.notifications) == ["audit"]

    def test_alert_squelch_behaviour(self) -> None:
        alert = parse_rules(RULES).alerts["cpu.high"]
        assert alert.squelched({"host": "test-01"}) is True
        assert alert.squelched({"host": "web01", "env": "prod"}) is False

    def test_locators(self) -> None:
        rs = parse_rules(RULES)
        loc = rs.alerts["cpu.high"].locator
        assert loc is not None
        assert loc.kind == "native"
        lines = RULES.splitlines()
        assert lines[loc.start_line - 1] == "alert cpu.high {"
        assert loc.slice_lines(lines)[-1] == "}"

    def test_macro_pairs_are_ordered(self) -> None:
        macro = parse_rules(RULES).macros["defaults"]
        assert macro.pairs == [("unknown", "1h"), ("ignoreUnknown", "true")]


class TestParseErrors:
    @pytest.mark.parametrize(
        ("text", "match"),
        [
            ("widget w {\n}\n", "unknown section type"),
            ("alert a {\n    crit = 1\n}\nalert a {\n    crit = 2\n}\n", "duplicate alert a"),
            ("alert a {\n    depends = 1\n}\n", "requires crit or warn"),
            ("alert a {\n    crit = 1\n    crit = 2\n}\n", "duplicate key crit"),
            ("alert a {\n    crit = 1\n    bogus = 2\n}\n", "unknown alert key bogus"),
            ("alert a {\n    crit = 1\n    template = nope\n}\n", "unknown template"),
            ("alert a {\n    crit = 1\n    macro = nope\n}\n", "unknown macro"),
            ("alert a {\n    crit = 1\n    critNotification = nope\n}\n", "unknown notification"),
            (
                'alert a {\n    crit = 1\n    critNotification = lookup("nope", "k")\n}\n',
                "unknown lookup",
            ),
            ("alert a {\n    crit = $missing\n}\n", "unknown variable"),
            ("alert a {\n    crit = 1\n    runEvery = 0\n}\n", "runEvery"),
            ("alert a {\n    crit = 1\n    runEvery = ²\n}\n", "runEvery"),
            ("alert a {\n    crit = 1\n    log = maybe\n}\n", "invalid boolean"),
            ("notification n {\n    next = other\n}\n", "unknown next"),
            ("notification n {\n    timeout = 5m\n}\n", "timeout specified without next"),
            ("notification n {\n    email = not-an-address\n}\n", "invalid email"),
            ("notification n {\n    post = ftp://x\n}\n", "invalid url"),
            ("notification n {\n    post = http://[::1/x\n}\n", "invalid url"),
            ("notification n {\n    color = red\n}\n", "unknown notification key"),
            ("lookup l {\n    crit = x\n}\n", "only contain entry"),
            (
                "lookup l {\n    entry host=a {\n    }\n    entry env=b {\n    }\n}\n",
                "differ from lookup tags",
            ),
            ("template t {\n    colour = x\n}\n", "unknown template key"),
            ("macro m {\n    macro = other\n}\n", "cannot reference"),
            ("$a = 1\n$a = 2\n", "duplicate variable"),
        ],
    )
    def test_invalid(self, text: str, match: str) -> None:
        with pytest.raises(ParseError, match=match):
            parse_rules(text)

    def test_bad_squelch_regex_reports_line(self) -> None:
        text = "alert a {\n    crit = 1\n    squelch = host=(\n}\n"
        with pytest.raises(RegexError) as excinfo:
            parse_rules(text)
        assert excinfo.value.line == 3

    def test_malformed_url_reports_line(self) -> None:
        with pytest.raises(ParseError) as excinfo:
            parse_rules("notification n {\n    print = true\n    get = http://[::1/x\n}\n")
        assert excinfo.value.line == 3

    def test_error_carries_line(self) -> None:
        with pytest.raises(ParseError) as excinfo:
            parse_rules("alert a {\n    crit = 1\n    bogus = 2\n}\n")
        assert excinfo.value.line == 3


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "seconds"),
        [("30s", 30.0), ("5m", 300.0), ("2h", 7200.0), ("1d", 86400.0), ("1w", 604800.0), ("1.5m", 90.0)],
    )
    def test_units(self, value: str, seconds: float) -> None:
        assert parse_duration(value) == seconds

    def test_invalid(self) -> None:
        with pytest.raises(ParseError):
            parse_duration("5 minutes")
