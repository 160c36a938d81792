"""Run external commands with inherited output and capture their exit status."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
import shlex
import shutil
import time
from typing import TYPE_CHECKING, Protocol

from nctl_harness.errors import BinaryNotFoundError
from nctl_harness.logger import logger

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

__all__ = [
    "CommandExecutor",
    "CommandResult",
    "ensure_binary",
    "format_command",
    "run_command",
]


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Exit status and timing of a finished command."""

    args: tuple[str, ...]
    returncode: int
    duration_ms: int
    timed_out: bool = False
    output: str = ""

    @property
    def ok(self) -> bool:
        """``True`` when the command exited with status zero."""
        return self.returncode == 0


class CommandExecutor(Protocol):
    """Callable that runs ``args`` in ``cwd`` and reports the outcome."""

    def __call__(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:  # pragma: no cover - protocol definition
        """Run ``args`` and return its result."""
        ...


def ensure_binary(*names: str) -> str:
    """Return the first binary available on ``PATH`` among ``names``."""
    for name in names:
        located = shutil.which(name)
        if located:
            return located
    raise BinaryNotFoundError(names[0])


def format_command(args: Sequence[str]) -> str:
    """Render ``args`` as a copy-pasteable shell line."""
    return shlex.join(args)


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = None,
    capture: bool = False,
) -> CommandResult:
    """Execute ``args`` letting stdout/stderr flow to the terminal.

    With ``capture`` the combined output is collected into ``CommandResult.output``
    instead. A command killed on ``timeout`` reports return code 124.
    """
    if not args:
        message = "Cannot run an empty command"
        raise ValueError(message)
    logger.debug(f"exec: {format_command(args)} (cwd={cwd})")
    start = time.perf_counter()
    try:
        returncode, timed_out, output = asyncio.run(_run_async(tuple(args), cwd, env, timeout, capture=capture))
    except FileNotFoundError as exc:
        raise BinaryNotFoundError(args[0]) from exc
    duration_ms = int((time.perf_counter() - start) * 1000)
    return CommandResult(
        args=tuple(args),
        returncode=returncode,
        duration_ms=duration_ms,
        timed_out=timed_out,
        output=output,
    )


async def _run_async(
    args: tuple[str, ...],
    cwd: Path | None,
    env: Mapping[str, str] | None,
    timeout: float | None,
    *,
    capture: bool,
) -> tuple[int, bool, str]:
    stream = asyncio.subprocess.PIPE if capture else None
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd is not None else None,
        env=dict(env) if env is not None else None,
        stdout=stream,
        stderr=asyncio.subprocess.STDOUT if capture else None,
    )
    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        process.kill()
        await process.communicate()
        logger.error(f"{args[0]} killed after {timeout:.0f}s")
        return 124, True, ""
    returncode = process.returncode if process.returncode is not None else -1
    output = stdout.decode("utf-8", errors="replace") if stdout else ""
    return returncode, False, output
