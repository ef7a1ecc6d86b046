"""Edit request types."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel

from src.rules.types import EntityType


class EditState(StrEnum):
    """Rule store state."""

    CLEAN = "CLEAN"
    EDITING = "EDITING"


class EditRequest(BaseModel):
    """Replace, create or delete one named section of the rule text."""

    name: str
    type: EntityType
    text: str = ""
    delete: bool = False


BulkEditRequest = list[EditRequest]
