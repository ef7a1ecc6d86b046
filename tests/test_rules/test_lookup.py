"""Tests for lookup resolution."""

from __future__ import annotations

from src.rules.lookup import entry_matches, resolve
from src.rules.types import Entry, Lookup


def _lookup(*entries: Entry, tags: list[str] | None = None) -> Lookup:
    return Lookup(name="notify", tags=tags or ["host"], entries=list(entries))


def _entry(tags: dict[str, str], values: dict[str, str]) -> Entry:
    definition = ",".join(f"{k}={v}" for k, v in tags.items())
    return Entry(definition=definition, tags=tags, values=values)


class TestResolve:
    def test_matching_entry(self) -> None:
        lk = _lookup(_entry({"host": "web01"}, {"crit": "ops"}))
        assert resolve(lk, {"host": "web01"}, "crit") == ("ops", True)

    def test_no_matching_entry(self) -> None:
        lk = _lookup(_entry({"host": "web01"}, {"crit": "ops"}))
        assert resolve(lk, {"host": "db01"}, "crit") == ("", False)

    def test_first_match_wins(self) -> None:
        lk = _lookup(
            _entry({"host": "web01"}, {"crit": "first"}),
            _entry({"host": "web01"}, {"crit": "second"}),
        )
        assert resolve(lk, {"host": "web01"}, "crit") == ("first", True)

    def test_matching_entry_without_key_stops(self) -> None:
        lk = _lookup(
            _entry({"host": "web01"}, {"warn": "ops"}),
            _entry({"host": "web01"}, {"crit": "later"}),
        )
        assert resolve(lk, {"host": "web01"}, "crit") == ("", False)

    def test_missing_tag_in_tagset_is_non_match(self) -> None:
        lk = _lookup(_entry({"host": "web01"}, {"crit": "ops"}))
        assert resolve(lk, {"env": "prod"}, "crit") == ("", False)

    def test_all_declared_tags_must_match(self) -> None:
        lk = _lookup(
            _entry({"host": "web01", "env": "prod"}, {"crit": "prod-ops"}),
            _entry({"host": "web01", "env": "dev"}, {"crit": "dev-ops"}),
            tags=["host", "env"],
        )
        assert resolve(lk, {"host": "web01", "env": "dev"}, "crit") == ("dev-ops", True)

    def test_exact_equality_not_regex(self) -> None:
        lk = _lookup(_entry({"host": "web.*"}, {"crit": "ops"}))
        assert resolve(lk, {"host": "web01"}, "crit") == ("", False)

    def test_empty_lookup(self) -> None:
        assert resolve(_lookup(), {"host": "web01"}, "crit") == ("", False)


class TestEntryMatches:
    def test_entry_missing_declared_key(self) -> None:
        lk = _lookup(tags=["host", "env"])
        entry = _entry({"host": "web01"}, {})
        assert entry_matches(lk, entry, {"host": "web01", "env": "prod"}) is False

    def test_extra_tagset_keys_ignored(self) -> None:
        lk = _lookup()
        entry = _entry({"host": "web01"}, {})
        assert entry_matches(lk, entry, {"host": "web01", "env": "prod"}) is True
