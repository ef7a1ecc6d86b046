"""Shared domain types — tag sets and source locations."""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict

# Tag key -> tag value, as produced by the alert evaluator.
TagSet = dict[str, str]


class LocationKind(StrEnum):
    """Kind of source location a rule entity was parsed from."""

    NATIVE = "native"


class NativeLocator(BaseModel):
    """Line range (1-based, inclusive) of an entity inside the rule text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal[LocationKind.NATIVE] = LocationKind.NATIVE
    start_line: int
    end_line: int

    def slice_lines(self, lines: list[str]) -> list[str]:
        return lines[self.start_line - 1 : self.end_line]


# Only native rule text exists today; new kinds join this alias as a union
# discriminated on ``kind``.
Locator = NativeLocator
