"""Notification selection — static notifications merged with lookup overrides."""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from src.core.types import TagSet
from src.rules.lookup import resolve
from src.rules.types import Notification, NotificationBinding, NotificationSet

logger = structlog.stdlib.get_logger()


def select_notifications(
    binding: NotificationBinding,
    registry: Mapping[str, Notification],
    tags: TagSet,
) -> NotificationSet:
    """Return the notifications that should fire for *tags*.

    Lookup-resolved names override same-named static notifications.
    Names that are not in *registry* are skipped so that one typo does not
    block delivery of the other notifications.
    """
    selected: NotificationSet = dict(binding.notifications)
    for key, lookup in binding.lookups.items():
        value, found = resolve(lookup, tags, key)
        if not found:
            continue
        for raw_name in value.split(","):
            name = raw_name.strip()
            notification = registry.get(name)
            if notification is None:
                logger.debug(
                    "lookup_notification_unknown",
                    lookup=lookup.name,
                    key=key,
                    notification=name,
                )
                continue
            selected[name] = notification
    return selected
