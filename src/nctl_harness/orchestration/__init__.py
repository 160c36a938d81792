"""Nightly smoke-test orchestration."""

from .nightly import (
    activated_shell_command,
    build_nightly_steps,
    check_environment_marker,
    describe_nightly,
    run_nightly,
)
from .readiness import http_status_probe, poll_until_ready, rest_port, wait_fixed
from .runner import PipelineRunner, Step

__all__ = [
    "PipelineRunner",
    "Step",
    "activated_shell_command",
    "build_nightly_steps",
    "check_environment_marker",
    "describe_nightly",
    "http_status_probe",
    "poll_until_ready",
    "rest_port",
    "run_nightly",
    "wait_fixed",
]
