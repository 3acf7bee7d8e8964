"""Subprocess execution for external media tools."""

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Protocol, Sequence

import structlog

from weafrica_media.services.exceptions import CommandTimeoutError, MediaToolNotFoundError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one finished subprocess."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_tail(self, limit: int = 500) -> str:
        """Last ``limit`` characters of stderr, stripped."""
        return self.stderr.strip()[-limit:]


class CommandRunner(Protocol):
    """Capability to run an argument list and collect its output."""

    async def run(self, args: Sequence[str], timeout: float | None = None) -> CommandResult: ...


async def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill a child process and reap it."""
    if proc.returncode is None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
    await proc.wait()


class SubprocessRunner:
    """Runs commands with asyncio subprocesses, no shell involved."""

    async def run(self, args: Sequence[str], timeout: float | None = None) -> CommandResult:
        """Run a command to completion.

        Args:
            args: Program followed by its arguments
            timeout: Seconds before the process is killed (None waits forever)

        Returns:
            CommandResult with decoded stdout/stderr

        Raises:
            MediaToolNotFoundError: Executable does not exist
            CommandTimeoutError: Process exceeded timeout and was killed
        """
        args = tuple(str(a) for a in args)
        logger.debug("command.started", program=args[0], argc=len(args))

        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise MediaToolNotFoundError(f"{args[0]} not found: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            await _kill(proc)
            raise CommandTimeoutError(f"{args[0]} timed out after {timeout}s")
        except asyncio.CancelledError:
            await _kill(proc)
            logger.info("command.cancelled", program=args[0], pid=proc.pid)
            raise

        return CommandResult(
            args=args,
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
