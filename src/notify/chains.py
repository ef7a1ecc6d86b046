"""Escalation chain building over the ``next`` relation."""

from __future__ import annotations

from collections.abc import Mapping

from src.rules.types import Notification

LOOP_MARKER = "..."


def build_chain(root: Notification, registry: Mapping[str, Notification]) -> list[str]:
    """Walk ``next`` references from *root* until the end or a repeat.

    A repeated name closes the chain with ``"..." + name``. A ``next`` that
    is missing from *registry* ends the chain like ``None`` does.
    """
    chain: list[str] = []
    seen: set[str] = set()
    current: Notification | None = root
    while current is not None:
        if current.name in seen:
            chain.append(f"{LOOP_MARKER}{current.name}")
            break
        chain.append(current.name)
        seen.add(current.name)
        current = registry.get(current.next_name) if current.next_name else None
    return chain


def build_chains(
    notifications: Mapping[str, Notification],
    registry: Mapping[str, Notification],
) -> list[list[str]]:
    """Return one chain per notification in *notifications*, in iteration order."""
    return [build_chain(root, registry) for root in notifications.values()]
