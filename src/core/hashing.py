"""Content hashing for rule text."""

from __future__ import annotations

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193


def gen_hash(text: str) -> str:
    """Return the FNV-1a 32-bit digest of *text* as a decimal string.

    Used for change tracking and stale-edit detection, not integrity.
    """
    h = _FNV32_OFFSET
    for byte in text.encode("utf-8"):
        h ^= byte
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    return str(h)
