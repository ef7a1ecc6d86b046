"""Notification selection and escalation chains."""

from src.notify.chains import LOOP_MARKER, build_chain, build_chains
from src.notify.selector import select_notifications

__all__ = [
    "LOOP_MARKER",
    "build_chain",
    "build_chains",
    "select_notifications",
]
