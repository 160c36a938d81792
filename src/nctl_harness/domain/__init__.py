"""Domain models for nctl-harness."""

from .models import (
    HarnessConfig,
    MetricsConfig,
    NightlyConfig,
    PlannedStep,
    RunReport,
    ScenarioConfig,
    ScrapeTarget,
    StepResult,
    WaitConfig,
)

__all__ = [
    "HarnessConfig",
    "MetricsConfig",
    "NightlyConfig",
    "PlannedStep",
    "RunReport",
    "ScenarioConfig",
    "ScrapeTarget",
    "StepResult",
    "WaitConfig",
]
