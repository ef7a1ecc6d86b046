"""RuleStore — single-writer access to the canonical rule text.

Readers only ever see a complete text/hash pair. Writers (bulk edits and
raw saves) are serialised by one lock, which also keeps save hook runs
from overlapping. A save hook failure does not roll back the text: once the
file is written the edit is committed, and the hook error is reported on
top of that.
"""

from __future__ import annotations

import asyncio
import difflib
import os
import tempfile
from collections.abc import Awaitable, Callable
from pathlib import Path

import structlog

from src.core.hashing import gen_hash
from src.editing.exceptions import (
    ConflictError,
    HookError,
    HookExecutionError,
    PersistError,
    ReloadError,
    ValidationError,
)
from src.editing.hook import SaveHook
from src.editing.types import BulkEditRequest, EditRequest, EditState
from src.rules.exceptions import ParseError
from src.rules.parser import parse_rules, scan

logger = structlog.stdlib.get_logger()

ReloadFn = Callable[[], Awaitable[None] | None]


def _join_lines(lines: list[str]) -> str:
    return "\n".join(lines) + "\n" if lines else ""


def _check_edit_text(edit: EditRequest) -> list[str]:
    try:
        scanned = scan(edit.text)
    except ParseError as exc:
        raise ValidationError(f"{edit.type} {edit.name}: {exc}") from exc
    if scanned.vars or len(scanned.sections) != 1:
        raise ValidationError(
            f"{edit.type} {edit.name}: edit text must contain exactly one section",
        )
    section = scanned.sections[0]
    if section.type != edit.type or section.name != edit.name:
        raise ValidationError(
            f"{edit.type} {edit.name}: edit text defines"
            f" {section.type} {section.name} instead",
        )
    return edit.text.strip("\n").splitlines()


def apply_edit(text: str, edit: EditRequest) -> str:
    """Return *text* with one section replaced, appended or removed.

    Deleting a section also drops the comment lines directly above it.
    """
    try:
        existing = scan(text).find(edit.type, edit.name)
    except ParseError as exc:
        raise ValidationError(f"current rule text does not parse: {exc}") from exc
    lines = text.splitlines()

    if edit.delete:
        if existing is None:
            raise ValidationError(f"cannot delete {edit.type} {edit.name}: not found")
        start = existing.start_line - 1
        # A comment block directly above the section belongs to it.
        while start > 0 and lines[start - 1].lstrip().startswith("#"):
            start -= 1
        del lines[start : existing.end_line]
        # Collapse the blank line left between the neighbours.
        if (
            start < len(lines)
            and not lines[start].strip()
            and (start == 0 or not lines[start - 1].strip())
        ):
            del lines[start]
        return _join_lines(lines)

    new_lines = _check_edit_text(edit)
    if existing is None:
        if lines and lines[-1].strip():
            lines.append("")
        lines.extend(new_lines)
    else:
        lines[existing.start_line - 1 : existing.end_line] = new_lines
    return _join_lines(lines)


def apply_edits(text: str, request: BulkEditRequest) -> str:
    """Apply every edit in order and validate the result as a whole.

    Raises:
        ValidationError: The first edit that fails, or the combined text
            failing to parse.
    """
    candidate = text
    for edit in request:
        candidate = apply_edit(candidate, edit)
    try:
        parse_rules(candidate)
    except ParseError as exc:
        raise ValidationError(f"edited rules are invalid: {exc}") from exc
    return candidate


class RuleStore:
    """Owns the rule text and the collaborators run when it changes.

    Usage::

        store = RuleStore.from_file("config/rules.conf", save_hook=hook)
        store.set_reload(runtime.reload_from(store))

        await store.bulk_edit([EditRequest(name="ops", type="notification", text=...)])
        await store.reload()
    """

    def __init__(
        self,
        raw_text: str = "",
        path: str | Path | None = None,
        save_hook: SaveHook | None = None,
        reload: ReloadFn | None = None,
    ) -> None:
        self._raw_text = raw_text
        self._hash = gen_hash(raw_text)
        self._path = Path(path) if path else None
        self._save_hook = save_hook
        self._reload = reload
        self._state = EditState.CLEAN
        self._lock = asyncio.Lock()

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        save_hook: SaveHook | None = None,
        reload: ReloadFn | None = None,
    ) -> RuleStore:
        """Load the rule text from *path*; a missing file starts empty."""
        rule_path = Path(path)
        raw_text = rule_path.read_text() if rule_path.exists() else ""
        return cls(raw_text, path=rule_path, save_hook=save_hook, reload=reload)

    # ── Read side ───────────────────────────────────────────────

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def state(self) -> EditState:
        return self._state

    def get_raw_text(self) -> str:
        return self._raw_text

    def get_hash(self) -> str:
        return self._hash

    def raw_diff(self, candidate: str) -> str:
        """Unified diff from the current text to *candidate*; empty if equal."""
        return "".join(
            difflib.unified_diff(
                self._raw_text.splitlines(keepends=True),
                candidate.splitlines(keepends=True),
                fromfile="current",
                tofile="proposed",
            )
        )

    # ── Collaborators ───────────────────────────────────────────

    def set_reload(self, reload: ReloadFn | None) -> None:
        """Replace the reload function."""
        self._reload = reload

    def set_save_hook(self, save_hook: SaveHook | None) -> None:
        """Replace the save hook."""
        self._save_hook = save_hook

    # ── Write side ──────────────────────────────────────────────

    async def bulk_edit(
        self,
        request: BulkEditRequest,
        user: str = "",
        message: str = "bulk edit",
        base_hash: str | None = None,
    ) -> None:
        """Apply all edits or none, then save like :meth:`save_raw_text`."""
        async with self._lock:
            self._state = EditState.EDITING
            try:
                self._check_base_hash(base_hash)
                candidate = apply_edits(self._raw_text, request)
                logger.info(
                    "bulk_edit_applied",
                    edits=len(request),
                    user=user,
                    old_hash=self._hash,
                )
                await self._commit(candidate, user, message)
            finally:
                self._state = EditState.CLEAN

    async def save_raw_text(
        self,
        raw_conf: str,
        diff: str,
        user: str,
        message: str,
        *args: str,
        base_hash: str | None = None,
    ) -> None:
        """Replace the whole rule text.

        *diff* is the diff the editor reviewed; when non-empty it must still
        match the diff against the current text.

        Raises:
            ValidationError: *raw_conf* does not parse.
            ConflictError: The text changed since *diff* or *base_hash* was taken.
            PersistError: Writing the rule file failed.
            HookExecutionError: The hook failed after the text was committed.
        """
        async with self._lock:
            self._state = EditState.EDITING
            try:
                self._check_base_hash(base_hash)
                try:
                    parse_rules(raw_conf)
                except ParseError as exc:
                    raise ValidationError(f"rule text is invalid: {exc}") from exc
                if diff and diff != self.raw_diff(raw_conf):
                    raise ConflictError("rule text has changed since the diff was generated")
                await self._commit(raw_conf, user, message, *args)
            finally:
                self._state = EditState.CLEAN

    async def reload(self) -> None:
        """Run the reload function against the committed text.

        Raises:
            ReloadError: No reload function is set, or it failed.
        """
        if self._reload is None:
            raise ReloadError("no reload function registered")
        try:
            result = self._reload()
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:
            logger.exception("rules_reload_failed", hash=self._hash)
            raise ReloadError(f"reload failed: {exc}") from exc
        logger.info("rules_reloaded", hash=self._hash)

    # ── Internals ───────────────────────────────────────────────

    def _check_base_hash(self, base_hash: str | None) -> None:
        if base_hash is not None and base_hash != self._hash:
            raise ConflictError(
                f"rule text hash is {self._hash}, edit was based on {base_hash}",
            )

    def _write_file(self, path: Path, text: str) -> None:
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".rules-")
            with os.fdopen(fd, "w") as f:
                f.write(text)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise PersistError(f"failed to write {path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("rules_tempfile_cleanup_failed", path=tmp_name)

    async def _commit(self, text: str, user: str, message: str, *args: str) -> None:
        if self._path is not None:
            self._write_file(self._path, text)
        old_hash = self._hash
        self._raw_text = text
        self._hash = gen_hash(text)
        logger.info("rules_saved", user=user, old_hash=old_hash, new_hash=self._hash)

        if self._save_hook is None:
            return
        files = str(self._path) if self._path is not None else ""
        try:
            await self._save_hook(files, user, message, *args)
        except HookError:
            raise
        except Exception as exc:
            raise HookExecutionError(f"save hook failed: {exc}") from exc
