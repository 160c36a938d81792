"""The nightly synchronization smoke test against a local NCTL network.

The sequence is fixed: clone the node launcher, activate NCTL, compile, set up
assets, start the network, wait, run the sync scenario, tear down, and remove
the clone. It is fail-fast; on an early failure the clone and any started
network are left behind unless ``always_cleanup`` is set.
"""

from __future__ import annotations

import os
import shlex
import shutil
import time
from typing import TYPE_CHECKING, Callable

from nctl_harness.errors import EnvironmentMarkerMissingError
from nctl_harness.logger import logger
from nctl_harness.tools.process import CommandResult, run_command

from .readiness import Probe, http_status_probe, poll_until_ready, rest_port, wait_fixed
from .runner import PipelineRunner, Step

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from nctl_harness.domain.models import NightlyConfig, PlannedStep, RunReport, StepName
    from nctl_harness.tools.process import CommandExecutor

__all__ = [
    "activated_shell_command",
    "build_nightly_steps",
    "check_environment_marker",
    "describe_nightly",
    "run_nightly",
]


def check_environment_marker(marker: str, environ: Mapping[str, str] | None = None) -> None:
    """Refuse to run outside CI; an empty value counts as unset."""
    env = os.environ if environ is None else environ
    if not env.get(marker):
        raise EnvironmentMarkerMissingError(marker)


def activated_shell_command(config: NightlyConfig, body: str | None = None) -> list[str]:
    """Wrap ``body`` in a shell that has sourced the NCTL activation script first."""
    script = f"source {shlex.quote(str(config.activate_script))}"
    if body:
        script = f"{script} && {body}"
    return [config.shell, "-c", script]


def scenario_invocation(config: NightlyConfig) -> str:
    """Shell line that runs the sync scenario from the scenarios directory."""
    scenario = config.scenario
    return (
        f"cd {shlex.quote(str(config.scenarios_path))} && "
        f"source {shlex.quote(scenario.script)} node={scenario.node} timeout={scenario.timeout}"
    )


def build_nightly_steps(
    config: NightlyConfig,
    *,
    executor: CommandExecutor = run_command,
    sleeper: Callable[[float], None] = time.sleep,
    probe: Probe | None = None,
) -> list[Step]:
    """Return the ordered steps of the nightly run."""
    root = config.root_dir

    def command_step(name: StepName, description: str, args: list[str], cwd: Path | None) -> Step:
        def action() -> CommandResult:
            return executor(args, cwd=cwd)

        return Step(name=name, description=description, action=action, command=args, cwd=cwd)

    compile_cmd, setup_cmd, start_cmd = config.bootstrap_commands
    steps = [
        command_step(
            "clone",
            f"Cloning {config.launcher_repo_url} into {config.launcher_dir}",
            ["git", "clone", config.launcher_repo_url],
            config.launcher_dir,
        ),
        command_step("activate", "Activating NCTL environment", activated_shell_command(config), root),
        command_step("compile", "Building NCTL binaries", activated_shell_command(config, compile_cmd), root),
        command_step("setup", "Setting up NCTL assets", activated_shell_command(config, setup_cmd), root),
        command_step("start", "Starting NCTL network", activated_shell_command(config, start_cmd), root),
        _wait_step(config, sleeper=sleeper, probe=probe),
        command_step(
            "scenario",
            f"Running {config.scenario.script} (node={config.scenario.node}, timeout={config.scenario.timeout})",
            activated_shell_command(config, scenario_invocation(config)),
            root,
        ),
        *_teardown_steps(config, executor=executor),
    ]
    return steps


def _teardown_steps(config: NightlyConfig, *, executor: CommandExecutor) -> list[Step]:
    teardown_args = activated_shell_command(config, config.teardown_command)
    clone_dir = config.clone_dir

    def teardown() -> CommandResult:
        return executor(teardown_args, cwd=config.root_dir)

    def cleanup() -> None:
        logger.info(f"Removing {clone_dir}")
        if clone_dir.exists():
            shutil.rmtree(clone_dir)

    return [
        Step(
            name="teardown",
            description="Tearing down NCTL network",
            action=teardown,
            command=teardown_args,
            cwd=config.root_dir,
        ),
        Step(name="cleanup", description=f"Removing {clone_dir}", action=cleanup, command=["rm", "-rf", str(clone_dir)]),
    ]


def _wait_step(config: NightlyConfig, *, sleeper: Callable[[float], None], probe: Probe | None) -> Step:
    wait = config.wait
    if wait.mode == "sleep":
        return Step(
            name="wait",
            description=f"Waiting {wait.seconds:g}s for network startup",
            action=lambda: wait_fixed(wait.seconds, sleeper),
        )

    ports = [rest_port(node, net_id=config.net_id) for node in range(1, wait.nodes + 1)]
    resolved_probe = probe or http_status_probe(ports)

    def poll() -> None:
        poll_until_ready(resolved_probe, timeout=wait.timeout, interval=wait.interval, sleeper=sleeper)

    return Step(
        name="wait",
        description=f"Polling {len(ports)} node(s) for readiness (timeout {wait.timeout:g}s)",
        action=poll,
    )


def describe_nightly(config: NightlyConfig) -> list[PlannedStep]:
    """Render the nightly plan without executing anything."""
    return [step.plan() for step in build_nightly_steps(config)]


def run_nightly(
    config: NightlyConfig,
    *,
    environ: Mapping[str, str] | None = None,
    executor: CommandExecutor = run_command,
    sleeper: Callable[[float], None] = time.sleep,
    probe: Probe | None = None,
) -> RunReport:
    """Check the CI marker, then run every step fail-fast."""
    check_environment_marker(config.marker_env, environ)
    steps = build_nightly_steps(config, executor=executor, sleeper=sleeper, probe=probe)
    on_failure = _teardown_steps(config, executor=executor) if config.always_cleanup else ()
    return PipelineRunner(on_failure=on_failure).run(steps)
