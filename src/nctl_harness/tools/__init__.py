"""Wrappers around external processes and binaries."""

from .binaries import REQUIRED_BINARIES, BinaryStatus, check_binary, check_required_binaries
from .process import (
    CommandExecutor,
    CommandResult,
    ensure_binary,
    format_command,
    run_command,
)

__all__ = [
    "REQUIRED_BINARIES",
    "BinaryStatus",
    "CommandExecutor",
    "CommandResult",
    "check_binary",
    "check_required_binaries",
    "ensure_binary",
    "format_command",
    "run_command",
]
