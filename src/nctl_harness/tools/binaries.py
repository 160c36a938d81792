"""Availability of the external binaries the nightly runner and the launcher need."""

from __future__ import annotations

from dataclasses import dataclass
import shutil
from typing import TYPE_CHECKING

from nctl_harness.errors import BinaryNotFoundError

from .process import run_command

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = ["REQUIRED_BINARIES", "BinaryStatus", "check_binary", "check_required_binaries"]

REQUIRED_BINARIES: tuple[str, ...] = ("git", "bash", "podman")
VERSION_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True, slots=True)
class BinaryStatus:
    """Where a binary resolved to and the first line of its ``--version`` output."""

    name: str
    path: str | None = None
    version: str | None = None
    error: str | None = None

    @property
    def available(self) -> bool:
        return self.path is not None and self.error is None


def check_binary(name: str) -> BinaryStatus:
    """Resolve ``name`` on ``PATH`` and ask it for its version."""
    path = shutil.which(name)
    if path is None:
        return BinaryStatus(name=name, error="not found on PATH")
    try:
        result = run_command([path, "--version"], timeout=VERSION_TIMEOUT_SECONDS, capture=True)
    except BinaryNotFoundError as exc:
        return BinaryStatus(name=name, error=str(exc))
    first_line = next(iter(result.output.strip().splitlines()), None)
    if result.timed_out:
        return BinaryStatus(name=name, path=path, error=f"--version timed out after {VERSION_TIMEOUT_SECONDS:g}s")
    if not result.ok:
        return BinaryStatus(name=name, path=path, error=first_line or f"--version exited with {result.returncode}")
    return BinaryStatus(name=name, path=path, version=first_line)


def check_required_binaries(names: Iterable[str] | None = None) -> list[BinaryStatus]:
    return [check_binary(name) for name in (REQUIRED_BINARIES if names is None else names)]
