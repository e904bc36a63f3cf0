"""Bounded execution of external commands (nginx, docker)."""

import asyncio
import logging
from typing import List

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Raised when a command fails, times out or cannot be started."""

    def __init__(self, command: List[str], message: str):
        self.command = command
        self.message = message
        super().__init__(f"{' '.join(command)}: {message}")


async def run_command(command: List[str], timeout: float) -> str:
    """Run a command without a shell and return its stdout.

    Raises:
        CommandError: non-zero exit, timeout, or missing executable.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CommandError(command, str(e)) from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        await _terminate(proc)
        raise CommandError(command, f"timed out after {timeout:.1f}s") from e
    except asyncio.CancelledError:
        await _terminate(proc)
        raise

    if proc.returncode != 0:
        message = stderr.decode(errors="replace").strip() or f"exit code {proc.returncode}"
        logger.debug("Command %s exited with %s", command[0], proc.returncode)
        raise CommandError(command, message)
    return stdout.decode(errors="replace")


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        proc.kill()
    await proc.wait()
