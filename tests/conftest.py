"""Shared fixtures for nctl-harness tests."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest
from loguru import logger

from nctl_harness.domain.models import NightlyConfig, ScenarioConfig, WaitConfig
from nctl_harness.tools.process import CommandResult

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence
    from pathlib import Path


@pytest.fixture(autouse=True)
def _reset_logger() -> Iterator[None]:
    """Route loguru to the current stderr so CLI runs never leave stale sinks."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG")
    yield
    logger.remove()


@dataclass
class RecordingExecutor:
    """Fake command executor that records calls and fails on request.

    ``fail_on`` maps a substring of the joined command line, and ``fail_at``
    a zero-based call index, to the exit status returned for that call.
    ``git clone`` creates the clone directory so cleanup can be observed on disk.
    """

    clone_dir: Path | None = None
    fail_on: dict[str, int] = field(default_factory=dict)
    fail_at: dict[int, int] = field(default_factory=dict)
    calls: list[tuple[tuple[str, ...], Path | None]] = field(default_factory=list)

    def __call__(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        index = len(self.calls)
        self.calls.append((tuple(args), cwd))
        if index in self.fail_at:
            return CommandResult(args=tuple(args), returncode=self.fail_at[index], duration_ms=0)
        line = " ".join(args)
        for needle, returncode in self.fail_on.items():
            if needle in line:
                return CommandResult(args=tuple(args), returncode=returncode, duration_ms=0)
        if tuple(args[:2]) == ("git", "clone"):
            if self.clone_dir is not None:
                self.clone_dir.mkdir(parents=True, exist_ok=True)
        return CommandResult(args=tuple(args), returncode=0, duration_ms=0)

    @property
    def lines(self) -> list[str]:
        """Joined command lines in call order."""
        return [" ".join(args) for args, _ in self.calls]


@dataclass
class RecordingSleeper:
    """Fake ``time.sleep`` collecting requested durations."""

    calls: list[float] = field(default_factory=list)

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def nightly_config(tmp_path: Path) -> NightlyConfig:
    """A nightly configuration rooted in a temporary directory."""
    root = tmp_path / "src"
    root.mkdir()
    launcher = tmp_path / "launcher"
    launcher.mkdir()
    return NightlyConfig(
        root_dir=root,
        launcher_dir=launcher,
        wait=WaitConfig(seconds=60),
        scenario=ScenarioConfig(node=6, timeout=500),
    )


@pytest.fixture
def executor(nightly_config: NightlyConfig) -> RecordingExecutor:
    """Recording executor wired to the configured clone directory."""
    return RecordingExecutor(clone_dir=nightly_config.clone_dir)


@pytest.fixture
def sleeper() -> RecordingSleeper:
    """Recording sleeper."""
    return RecordingSleeper()
