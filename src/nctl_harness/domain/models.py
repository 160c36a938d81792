"""Pydantic domain models for nctl-harness."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, PositiveInt

Datetime = datetime

StepName = Literal[
    "clone",
    "activate",
    "compile",
    "setup",
    "start",
    "wait",
    "scenario",
    "teardown",
    "cleanup",
]
StepStatus = Literal["succeeded", "failed", "skipped"]

DEFAULT_MARKER_ENV = "DRONE"
DEFAULT_ROOT_DIR = Path("/drone/src")
DEFAULT_LAUNCHER_DIR = Path("/drone")
DEFAULT_LAUNCHER_REPO = "https://github.com/CasperLabs/casper-node-launcher.git"
ACTIVATE_RELATIVE_PATH = Path("utils/nctl/activate")
SCENARIOS_RELATIVE_PATH = Path("utils/nctl/sh/scenarios")


class WaitConfig(BaseModel):
    """How the runner waits for the network to come up after ``nctl-start``."""

    mode: Literal["sleep", "poll"] = "sleep"
    seconds: float = Field(default=60.0, ge=0)
    timeout: float = Field(default=300.0, gt=0)
    interval: float = Field(default=5.0, gt=0)
    nodes: PositiveInt = 5


class ScenarioConfig(BaseModel):
    """External scenario script and the parameters it is invoked with."""

    script: str = "sync_test.sh"
    node: PositiveInt = 6
    timeout: PositiveInt = 500


class NightlyConfig(BaseModel):
    """Configuration of the nightly synchronization smoke test."""

    marker_env: str = DEFAULT_MARKER_ENV
    root_dir: Path = DEFAULT_ROOT_DIR
    scenarios_dir: Path | None = None
    launcher_dir: Path = DEFAULT_LAUNCHER_DIR
    launcher_repo_url: str = DEFAULT_LAUNCHER_REPO
    shell: str = "bash"
    bootstrap_commands: list[str] = Field(
        default_factory=lambda: ["nctl-compile", "nctl-assets-setup", "nctl-start"],
        min_length=3,
        max_length=3,
    )
    teardown_command: str = "nctl-assets-teardown"
    wait: WaitConfig = Field(default_factory=WaitConfig)
    scenario: ScenarioConfig = Field(default_factory=ScenarioConfig)
    net_id: PositiveInt = 1
    always_cleanup: bool = False

    @property
    def scenarios_path(self) -> Path:
        """Directory holding the scenario scripts."""
        if self.scenarios_dir is not None:
            return self.scenarios_dir
        return self.root_dir / SCENARIOS_RELATIVE_PATH

    @property
    def activate_script(self) -> Path:
        """Path of the NCTL environment activation definition."""
        return self.root_dir / ACTIVATE_RELATIVE_PATH

    @property
    def clone_dir(self) -> Path:
        """Directory the launcher repository is cloned into."""
        name = self.launcher_repo_url.rstrip("/").rsplit("/", 1)[-1].removesuffix(".git")
        return self.launcher_dir / name


class MetricsConfig(BaseModel):
    """Configuration of the Prometheus scrape file generator."""

    output_dir: Path | None = None
    assets_dir: Path | None = None
    net_id: PositiveInt = 1
    node_count: PositiveInt = 5
    scrape_interval: str = "5s"


class HarnessConfig(BaseModel):
    """Root configuration document (``nctl-harness.yaml``)."""

    nightly: NightlyConfig = Field(default_factory=NightlyConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


class PlannedStep(BaseModel):
    """A pipeline step as it would be executed, used for dry runs."""

    name: StepName
    description: str
    command: list[str] | None = None
    cwd: Path | None = None


class StepResult(BaseModel):
    """Outcome of a single executed (or skipped) step."""

    name: StepName
    status: StepStatus
    command: list[str] | None = None
    returncode: int | None = None
    started_at: Datetime | None = None
    ended_at: Datetime | None = None
    duration_ms: int | None = None
    error: str | None = None


class RunReport(BaseModel):
    """Trace of a nightly run, persisted with ``--report-file``."""

    started_at: Datetime
    ended_at: Datetime | None = None
    succeeded: bool = False
    exit_code: int | None = None
    steps: list[StepResult] = Field(default_factory=list)

    @property
    def failed_step(self) -> StepResult | None:
        """Return the first failed step, if any."""
        return next((step for step in self.steps if step.status == "failed"), None)


class ScrapeTarget(BaseModel):
    """A single node endpoint scraped by Prometheus."""

    node: str
    host: str = "127.0.0.1"
    port: int = Field(ge=1, le=65535)

    @property
    def address(self) -> str:
        """``host:port`` form used in static_configs."""
        return f"{self.host}:{self.port}"
