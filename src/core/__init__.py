"""Core module — config, types, logging, hashing."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.hashing import gen_hash
from src.core.logging import setup_logging
from src.core.types import LocationKind, Locator, NativeLocator, TagSet

__all__ = [
    "LocationKind",
    "Locator",
    "NativeLocator",
    "Settings",
    "TagSet",
    "gen_hash",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
