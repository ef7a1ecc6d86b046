"""FNV-1a content hash tests."""

from __future__ import annotations

from src.core.hashing import gen_hash


class TestGenHash:
    def test_empty_string_is_offset_basis(self) -> None:
        assert gen_hash("") == "2166136261"

    def test_known_vector(self) -> None:
        # FNV-1a 32-bit of "a"
        assert gen_hash("a") == str(0xE40C292C)

    def test_deterministic(self) -> None:
        text = "alert a {\n    crit = 1\n}\n"
        assert gen_hash(text) == gen_hash(str(text))

    def test_single_byte_change(self) -> None:
        assert gen_hash("crit = 1") != gen_hash("crit = 2")

    def test_is_decimal_string(self) -> None:
        assert gen_hash("anything").isdigit()
