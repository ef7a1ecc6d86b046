"""Domain types for parsed rule configuration.

Every model here is rebuilt from the rule text on each reload and never
mutated afterwards.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from src.core.types import Locator, TagSet
from src.rules.squelch import SquelchList


class EntityType(StrEnum):
    """Kinds of named sections in the rule text."""

    ALERT = "alert"
    NOTIFICATION = "notification"
    TEMPLATE = "template"
    LOOKUP = "lookup"
    MACRO = "macro"


class Entry(BaseModel):
    """One lookup row: a tag guard plus the values it resolves to."""

    model_config = ConfigDict(frozen=True)

    definition: str
    tags: dict[str, str] = Field(default_factory=dict)
    values: dict[str, str] = Field(default_factory=dict)


class Lookup(BaseModel):
    """Tag-indexed override table."""

    model_config = ConfigDict(frozen=True)

    name: str
    tags: list[str] = Field(default_factory=list)
    entries: list[Entry] = Field(default_factory=list)
    text: str = ""
    locator: Locator | None = None


class Notification(BaseModel):
    """Named delivery action with an optional escalation successor.

    ``next_name`` is a reference into the notification registry, never an
    owned object, so chains may share successors or loop.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    text: str = ""
    vars: dict[str, str] = Field(default_factory=dict)
    email: list[str] = Field(default_factory=list)
    post: str | None = None
    get: str | None = None
    body: str = ""
    print: bool = False
    next_name: str | None = None
    timeout: float = 0.0  # seconds before escalating to next
    content_type: str = ""
    run_on_actions: bool = True
    use_body: bool = False
    locator: Locator | None = None


NotificationSet = dict[str, Notification]


class NotificationBinding(BaseModel):
    """An alert's crit or warn notifications.

    ``lookups`` maps a resolution key to the table that may supply extra
    notification names for that key.
    """

    model_config = ConfigDict(frozen=True)

    notifications: dict[str, Notification] = Field(default_factory=dict)
    lookups: dict[str, Lookup] = Field(default_factory=dict)


class Template(BaseModel):
    """Raw notification template; rendering happens elsewhere."""

    model_config = ConfigDict(frozen=True)

    name: str
    text: str = ""
    subject: str = ""
    body: str = ""
    vars: dict[str, str] = Field(default_factory=dict)
    locator: Locator | None = None


class Macro(BaseModel):
    """Reusable ordered key/value pairs applied to alerts."""

    model_config = ConfigDict(frozen=True)

    name: str
    text: str = ""
    pairs: list[tuple[str, str]] = Field(default_factory=list)
    locator: Locator | None = None


class Alert(BaseModel):
    """A parsed alert definition."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    text: str = ""
    vars: dict[str, str] = Field(default_factory=dict)
    crit: str = ""
    warn: str = ""
    depends: str = ""
    squelch: SquelchList = Field(default_factory=SquelchList)
    raw_squelch: list[str] = Field(default_factory=list)
    crit_notification: NotificationBinding = Field(default_factory=NotificationBinding)
    warn_notification: NotificationBinding = Field(default_factory=NotificationBinding)
    template_name: str = ""
    unknown: float = 0.0
    max_log_frequency: float = 0.0
    ignore_unknown: bool = False
    unknowns_normal: bool = False
    unjoined_ok: bool = False
    log: bool = False
    run_every: int = 0
    locator: Locator | None = None

    def squelched(self, tags: TagSet) -> bool:
        return self.squelch.squelched(tags)


class RuleSet(BaseModel):
    """Everything derived from one parse of the rule text."""

    model_config = ConfigDict(frozen=True)

    raw_text: str = ""
    hash: str = ""
    vars: dict[str, str] = Field(default_factory=dict)
    alerts: dict[str, Alert] = Field(default_factory=dict)
    notifications: dict[str, Notification] = Field(default_factory=dict)
    lookups: dict[str, Lookup] = Field(default_factory=dict)
    templates: dict[str, Template] = Field(default_factory=dict)
    macros: dict[str, Macro] = Field(default_factory=dict)

    def get_alert(self, name: str) -> Alert | None:
        return self.alerts.get(name)

    def get_notification(self, name: str) -> Notification | None:
        return self.notifications.get(name)

    def get_lookup(self, name: str) -> Lookup | None:
        return self.lookups.get(name)

    def get_template(self, name: str) -> Template | None:
        return self.templates.get(name)
