"""Rule text mutation — hashing, diffs, bulk edits, saves and hooks."""

from src.editing.exceptions import (
    ConflictError,
    EditError,
    HookError,
    HookExecutionError,
    HookNotFoundError,
    PersistError,
    ReloadError,
    ValidationError,
)
from src.editing.hook import SaveHook, make_save_command_hook
from src.editing.store import ReloadFn, RuleStore, apply_edit, apply_edits
from src.editing.types import BulkEditRequest, EditRequest, EditState

__all__ = [
    "BulkEditRequest",
    "ConflictError",
    "EditError",
    "EditRequest",
    "EditState",
    "HookError",
    "HookExecutionError",
    "HookNotFoundError",
    "PersistError",
    "ReloadError",
    "ReloadFn",
    "RuleStore",
    "SaveHook",
    "ValidationError",
    "apply_edit",
    "apply_edits",
    "make_save_command_hook",
]
