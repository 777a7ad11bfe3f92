"""Async subprocess utilities.

Provides non-blocking subprocess execution for the git workspace. Each child
is started in its own session so that it leads a fresh process group; when the
call times out or the awaiting task is cancelled the whole group is killed,
which also takes down helpers git spawned (ssh, gpg, credential helpers).

Example:
    >>> from cherry_pick_action.utils.async_subprocess import run_command
    >>> output, code = await run_command("git", "status", cwd="/repo", timeout=30)
    >>> if code == 0:
    ...     print(output)
"""

import asyncio
import os
import signal
from collections.abc import Mapping
from pathlib import Path

import structlog

log = structlog.get_logger(__name__)


async def run_command(
    *args: str,
    cwd: Path | str | None = None,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> tuple[str, int]:
    """Run a command and capture its combined stdout and stderr.

    Args:
        *args: Executable followed by its arguments
        cwd: Working directory for the command
        timeout: Seconds to wait before killing the process group.
            None waits indefinitely.
        env: Full environment for the child. None inherits the parent's.

    Returns:
        Tuple of (combined output, return code). Output is decoded as UTF-8
        with replacement for invalid bytes.

    Raises:
        TimeoutError: If the timeout expires. The process group is killed first.
        asyncio.CancelledError: If the awaiting task is cancelled. The process
            group is killed first.
        FileNotFoundError: If the executable is not found.
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        env=dict(env) if env is not None else None,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.STDOUT,
        start_new_session=True,
    )

    try:
        output_bytes, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except (TimeoutError, asyncio.CancelledError):
        await terminate_process_group(process)
        raise

    output = (output_bytes or b"").decode("utf-8", errors="replace")
    return output, process.returncode or 0


async def terminate_process_group(process: asyncio.subprocess.Process) -> None:
    """Kill the process group led by ``process`` and reap the child."""
    if process.returncode is not None:
        return

    try:
        os.killpg(os.getpgid(process.pid), signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        log.warning("process_group_kill_denied", pid=process.pid)
        process.kill()

    try:
        await asyncio.shield(process.wait())
    except asyncio.CancelledError:
        # The group is already SIGKILLed; the child is reaped by the event loop.
        pass
