"""Read path used by the alert loop: squelch, select, chain."""

from src.alerting.runtime import NotificationLevel, RuleRuntime

__all__ = [
    "NotificationLevel",
    "RuleRuntime",
]
