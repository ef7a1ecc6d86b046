"""Save hooks — external commands run after rule text is persisted."""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Awaitable, Callable

import structlog

from src.editing.exceptions import HookExecutionError, HookNotFoundError

logger = structlog.stdlib.get_logger()

# (files, user, message, *args)
SaveHook = Callable[..., Awaitable[None]]

DEFAULT_HOOK_TIMEOUT_SECS = 60.0


def make_save_command_hook(
    cmd_name: str,
    timeout_secs: float | None = DEFAULT_HOOK_TIMEOUT_SECS,
) -> SaveHook:
    """Build a hook that runs *cmd_name* with ``files user message args...``.

    The command is resolved on the search path now, not at save time.

    Raises:
        HookNotFoundError: *cmd_name* cannot be found.
    """
    cmd_path = shutil.which(cmd_name)
    if cmd_path is None:
        raise HookNotFoundError(f"command {cmd_name} not found, failed to create save hook")

    async def _hook(files: str, user: str, message: str, *args: str) -> None:
        logger.info("save_hook_executing", command=cmd_name, user=user)
        try:
            proc = await asyncio.create_subprocess_exec(
                cmd_path,
                files,
                user,
                message,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise HookExecutionError(f"failed to launch {cmd_name}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_secs)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("save_hook_timeout", command=cmd_name, timeout_secs=timeout_secs)
            raise HookExecutionError(
                f"{cmd_name} timed out after {timeout_secs}s",
            ) from None

        out = stdout.decode(errors="replace")
        err = stderr.decode(errors="replace")
        if proc.returncode != 0:
            logger.warning(
                "save_hook_failed",
                command=cmd_name,
                returncode=proc.returncode,
                stderr=err,
            )
            raise HookExecutionError(
                f"{cmd_name} exited with status {proc.returncode}: {err.strip()}",
                returncode=proc.returncode,
                stderr=err,
            )
        logger.info("save_hook_succeeded", command=cmd_name, stdout=out)

    return _hook
