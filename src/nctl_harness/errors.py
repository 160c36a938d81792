"""Exception hierarchy shared by the nightly runner and the metrics launcher."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nctl_harness.domain.models import RunReport

__all__ = [
    "BinaryNotFoundError",
    "EnvironmentMarkerMissingError",
    "HarnessError",
    "MetricsConfigError",
    "ReadinessTimeoutError",
    "StepFailedError",
]

EXIT_COMMAND_NOT_FOUND = 127
EXIT_TIMEOUT = 124
EXIT_SIGNAL_BASE = 128


def exit_status(returncode: int) -> int:
    """Map a child status to a shell exit status; signal deaths become ``128 + N``."""
    if returncode < 0:
        return EXIT_SIGNAL_BASE - returncode
    return returncode or 1


class HarnessError(RuntimeError):
    """Base error carrying the process exit status the CLI should use."""

    exit_code: int = 1


class EnvironmentMarkerMissingError(HarnessError):
    """Raised when the CI environment marker is unset or empty."""

    def __init__(self, marker: str) -> None:
        """Record the marker name for the diagnostic."""
        message = f"Must be run on CI: environment variable '{marker}' is not set"
        super().__init__(message)
        self.marker = marker


class BinaryNotFoundError(HarnessError, FileNotFoundError):
    """Raised when a requested binary is not available on the system."""

    exit_code = EXIT_COMMAND_NOT_FOUND

    def __init__(self, binary: str) -> None:
        """Store the missing binary name for downstream diagnostics."""
        message = f"Required binary '{binary}' was not found on PATH"
        super().__init__(message)
        self.binary = binary


class ReadinessTimeoutError(HarnessError):
    """Raised when the network does not report ready within the polling budget."""

    exit_code = EXIT_TIMEOUT

    def __init__(self, timeout: float, attempts: int) -> None:
        """Capture the polling budget that was exhausted."""
        message = f"Network not ready after {timeout:.0f}s ({attempts} probes)"
        super().__init__(message)
        self.timeout = timeout
        self.attempts = attempts


class StepFailedError(HarnessError):
    """Raised when a pipeline step fails; later steps are not executed."""

    def __init__(self, step: str, returncode: int, *, detail: str | None = None) -> None:
        """Capture the failing step and its exit status."""
        message = f"Step '{step}' failed with exit status {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.step = step
        self.returncode = returncode
        self.exit_code = exit_status(returncode)
        self.report: RunReport | None = None


class MetricsConfigError(HarnessError):
    """Raised when the Prometheus scrape configuration cannot be produced."""
