"""RuleRuntime — the current RuleSet snapshot and the alert-loop read path."""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum

import structlog

from src.core.types import TagSet
from src.editing.store import RuleStore
from src.notify.chains import build_chains
from src.notify.selector import select_notifications
from src.rules.exceptions import UnknownEntityError
from src.rules.parser import parse_rules
from src.rules.types import Alert, NotificationSet, RuleSet

logger = structlog.stdlib.get_logger()


class NotificationLevel(StrEnum):
    """Which of an alert's notification bindings to use."""

    CRIT = "crit"
    WARN = "warn"


class RuleRuntime:
    """Holds an immutable RuleSet and replaces it wholesale on rebuild.

    A failed rebuild leaves the previous snapshot in place, so alert
    evaluation never sees a partially built configuration.

    Usage::

        runtime = RuleRuntime.from_text(store.get_raw_text())
        store.set_reload(runtime.reload_from(store))

        if not runtime.is_squelched("cpu.high", tags):
            chains = runtime.notification_chains("cpu.high", tags)
    """

    def __init__(self, ruleset: RuleSet | None = None) -> None:
        self._ruleset = ruleset or RuleSet()

    @classmethod
    def from_text(cls, text: str) -> RuleRuntime:
        return cls(parse_rules(text))

    @property
    def snapshot(self) -> RuleSet:
        """The current RuleSet; never mutated after it is published."""
        return self._ruleset

    def rebuild(self, text: str) -> RuleSet:
        """Parse *text* and publish the result.

        Raises:
            ParseError: *text* is invalid; the old snapshot stays current.
        """
        ruleset = parse_rules(text)
        old_hash = self._ruleset.hash
        self._ruleset = ruleset
        logger.info(
            "rules_rebuilt",
            old_hash=old_hash,
            new_hash=ruleset.hash,
            alerts=len(ruleset.alerts),
            notifications=len(ruleset.notifications),
            lookups=len(ruleset.lookups),
        )
        return ruleset

    def reload_from(self, store: RuleStore) -> Callable[[], None]:
        """Return a reload function that rebuilds from *store*'s committed text."""

        def _reload() -> None:
            self.rebuild(store.get_raw_text())

        return _reload

    # ── Alert-loop queries ──────────────────────────────────────

    def _alert(self, ruleset: RuleSet, name: str) -> Alert:
        alert = ruleset.get_alert(name)
        if alert is None:
            raise UnknownEntityError(f"unknown alert {name}")
        return alert

    def is_squelched(self, alert_name: str, tags: TagSet) -> bool:
        ruleset = self._ruleset
        return self._alert(ruleset, alert_name).squelched(tags)

    def _select(
        self,
        ruleset: RuleSet,
        alert_name: str,
        tags: TagSet,
        level: NotificationLevel,
    ) -> NotificationSet:
        alert = self._alert(ruleset, alert_name)
        binding = (
            alert.crit_notification
            if level == NotificationLevel.CRIT
            else alert.warn_notification
        )
        return select_notifications(binding, ruleset.notifications, tags)

    def active_notifications(
        self,
        alert_name: str,
        tags: TagSet,
        level: NotificationLevel = NotificationLevel.CRIT,
    ) -> NotificationSet:
        return self._select(self._ruleset, alert_name, tags, level)

    def notification_chains(
        self,
        alert_name: str,
        tags: TagSet,
        level: NotificationLevel = NotificationLevel.CRIT,
    ) -> list[list[str]]:
        """Escalation chains for the notifications active on *tags*, sorted."""
        ruleset = self._ruleset
        active = self._select(ruleset, alert_name, tags, level)
        return sorted(build_chains(active, ruleset.notifications))
