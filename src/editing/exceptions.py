"""Exceptions raised while editing, saving and reloading rule text."""

from __future__ import annotations

from src.rules.exceptions import RuleConfError


class EditError(RuleConfError):
    """Base exception for rule text mutation errors."""


class ValidationError(EditError):
    """An edit, or the text it produces, does not parse into valid rules."""


class ConflictError(EditError):
    """The rule text changed since the editor last viewed it."""


class PersistError(EditError):
    """Writing the rule file failed; the in-memory text is unchanged."""


class HookError(EditError):
    """Base exception for save hook problems."""


class HookNotFoundError(HookError):
    """The configured save hook executable is not on the search path."""


class HookExecutionError(HookError):
    """The save hook could not be launched, timed out or exited non-zero."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ReloadError(EditError):
    """The text was persisted but rebuilding derived rules failed."""
