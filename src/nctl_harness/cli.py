"""Typer CLI entry points for nctl-harness."""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import DEFAULT_CONFIG_NAME, LoadError, load_harness_config
from .domain.models import DEFAULT_MARKER_ENV
from .errors import HarnessError, StepFailedError
from .logger import setup_logger
from .metrics import generate_config, launch_prometheus, write_prometheus_config
from .orchestration import check_environment_marker, describe_nightly, run_nightly
from .tools import check_required_binaries, run_command

if TYPE_CHECKING:
    from .domain.models import HarnessConfig, MetricsConfig, NightlyConfig, PlannedStep, RunReport

app = typer.Typer(help="Operational tooling for a local NCTL test network.")
metrics_app = typer.Typer(help="Prometheus metrics collection for the local network.")
app.add_typer(metrics_app, name="metrics")
console = Console()

LOG_LEVEL_OPTION = typer.Option(
    "INFO",
    "--log-level",
    case_sensitive=False,
    help="Log level: DEBUG, INFO, WARNING, ERROR or CRITICAL.",
)
LOG_FILE_OPTION = typer.Option(
    None,
    "--log-file",
    dir_okay=False,
    help="Optional file that receives a copy of the log output.",
)
CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
    resolve_path=True,
    help=f"YAML configuration file (defaults to ./{DEFAULT_CONFIG_NAME} when present).",
)
ENV_FILE_OPTION = typer.Option(
    None,
    "--env-file",
    "-e",
    resolve_path=True,
    file_okay=True,
    dir_okay=False,
    help="Optional .env file(s) used to resolve ${VAR} placeholders in the configuration.",
)
ROOT_DIR_OPTION = typer.Option(None, "--root-dir", file_okay=False, help="Node repository checkout (NCTL root).")
LAUNCHER_DIR_OPTION = typer.Option(
    None,
    "--launcher-dir",
    file_okay=False,
    help="Directory the node launcher repository is cloned into.",
)
MARKER_OPTION = typer.Option(None, "--marker-env", help="Environment variable that must be set for the run to proceed.")
WAIT_MODE_OPTION = typer.Option(
    None,
    "--wait-mode",
    case_sensitive=False,
    help="How to wait for network startup: 'sleep' (fixed pause) or 'poll' (readiness probe).",
)
WAIT_SECONDS_OPTION = typer.Option(None, "--wait-seconds", min=0, help="Fixed pause used by the 'sleep' wait mode.")
WAIT_TIMEOUT_OPTION = typer.Option(None, "--wait-timeout", min=1, help="Polling budget used by the 'poll' wait mode.")
NODE_OPTION = typer.Option(None, "--node", min=1, help="Node count passed to the scenario script.")
TIMEOUT_OPTION = typer.Option(None, "--timeout", min=1, help="Timeout passed to the scenario script.")
ALWAYS_CLEANUP_OPTION = typer.Option(
    None,
    "--always-cleanup/--no-always-cleanup",
    help="Tear down and remove the clone even when a step fails.",
)
DRY_RUN_OPTION = typer.Option(default=False, help="Print the plan without executing any step.")
REPORT_FILE_OPTION = typer.Option(
    None,
    "--report-file",
    dir_okay=False,
    help="Write the run report (JSON) to this path.",
)
OUTPUT_DIR_OPTION = typer.Option(
    None,
    "--output-dir",
    "-o",
    file_okay=False,
    help="Directory that receives prometheus.yml (defaults to the current directory).",
)
ASSETS_DIR_OPTION = typer.Option(
    None,
    "--assets-dir",
    file_okay=False,
    help="NCTL assets directory used to discover nodes and their REST ports.",
)
NODE_COUNT_OPTION = typer.Option(None, "--node-count", min=1, help="Nodes to scrape when no assets are found.")
STDOUT_OPTION = typer.Option(default=False, help="Print the configuration instead of writing prometheus.yml.")
INIT_FORCE_OPTION = typer.Option(
    default=False,
    help="Overwrite existing scaffold files if they are already present.",
)
INIT_TARGET_ARGUMENT = typer.Argument(
    Path(),
    file_okay=False,
    resolve_path=True,
    help="Directory where configuration templates should be generated.",
)

DEFAULT_EXECUTOR = run_command
DEFAULT_SLEEPER = time.sleep
EXEC_FUNCTION = os.execvp

INIT_CONFIG_TEMPLATE = """
nightly:
  marker_env: DRONE
  root_dir: ${NCTL_ROOT_DIR:-/drone/src}
  launcher_dir: ${NCTL_LAUNCHER_DIR:-/drone}
  launcher_repo_url: https://github.com/CasperLabs/casper-node-launcher.git
  wait:
    mode: sleep
    seconds: 60
    timeout: 300
    interval: 5
    nodes: 5
  scenario:
    script: sync_test.sh
    node: 6
    timeout: 500
  always_cleanup: false

metrics:
  assets_dir: ${NCTL_ASSETS_DIR:-/drone/src/utils/nctl/assets}
  net_id: 1
  node_count: 5
  scrape_interval: 5s
""".strip()

INIT_ENV_TEMPLATE = """
# Environment variables consumed by nctl-harness.yaml
NCTL_ROOT_DIR=/drone/src
NCTL_LAUNCHER_DIR=/drone
NCTL_ASSETS_DIR=/drone/src/utils/nctl/assets
""".strip()


def _load_config(config_file: Path | None, env_file: list[Path] | None) -> HarnessConfig:
    if config_file is None:
        default = Path(DEFAULT_CONFIG_NAME)
        config_file = default.resolve() if default.is_file() else None
    env_files = list(env_file) if env_file else None
    try:
        result = load_harness_config(config_file, env_files=env_files, overrides=os.environ)
    except LoadError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if result.source is not None:
        console.print(f"[dim]Configuration loaded from {result.source}[/dim]")
    return result.config


def _exit_with(exc: HarnessError) -> NoReturn:
    console.print(f"[red]{escape(str(exc))}[/red]")
    raise typer.Exit(code=exc.exit_code) from exc


def _without_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def _apply_nightly_overrides(
    nightly: NightlyConfig,
    *,
    root_dir: Path | None,
    launcher_dir: Path | None,
    marker_env: str | None,
    wait_mode: str | None,
    wait_seconds: float | None,
    wait_timeout: float | None,
    node: int | None,
    timeout: int | None,
    always_cleanup: bool | None,
) -> NightlyConfig:
    if wait_mode is not None and wait_mode.lower() not in {"sleep", "poll"}:
        message = "Unsupported wait mode. Choose 'sleep' or 'poll'."
        raise typer.BadParameter(message)
    wait = nightly.wait.model_copy(
        update=_without_none(
            {
                "mode": wait_mode.lower() if wait_mode else None,
                "seconds": wait_seconds,
                "timeout": wait_timeout,
            },
        ),
    )
    scenario = nightly.scenario.model_copy(update=_without_none({"node": node, "timeout": timeout}))
    return nightly.model_copy(
        update=_without_none(
            {
                "root_dir": root_dir,
                "launcher_dir": launcher_dir,
                "marker_env": marker_env,
                "always_cleanup": always_cleanup,
                "wait": wait,
                "scenario": scenario,
            },
        ),
    )


def _print_plan(plan: list[PlannedStep]) -> None:
    table = Table(title="Nightly Plan")
    table.add_column("#", justify="right")
    table.add_column("Step", style="bold")
    table.add_column("Description")
    table.add_column("Command", overflow="fold")
    for index, step in enumerate(plan, start=1):
        command = " ".join(step.command) if step.command else "-"
        table.add_row(str(index), step.name, step.description, command)
    console.print(table)


def _print_report(report: RunReport) -> None:
    table = Table(title="Nightly Run")
    table.add_column("Step", style="bold")
    table.add_column("Status")
    table.add_column("Exit", justify="right")
    table.add_column("Duration (ms)", justify="right")
    colors = {"succeeded": "green", "failed": "red", "skipped": "dim"}
    for step in report.steps:
        color = colors[step.status]
        table.add_row(
            step.name,
            f"[{color}]{step.status}[/{color}]",
            "" if step.returncode is None else str(step.returncode),
            "" if step.duration_ms is None else str(step.duration_ms),
        )
    console.print(table)


def _write_report(report: RunReport, report_file: Path | None) -> None:
    if report_file is None:
        return
    report_file.parent.mkdir(parents=True, exist_ok=True)
    report_file.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    console.print(f"[green]Run report written to {report_file}[/green]")


@app.callback()
def main_callback(
    log_level: str = LOG_LEVEL_OPTION,
    log_file: Path | None = LOG_FILE_OPTION,
) -> None:
    """Configure logging for every subcommand."""
    setup_logger(level=log_level, log_file=log_file)


@app.command()
def nightly(
    config_file: Path | None = CONFIG_OPTION,
    env_file: list[Path] | None = ENV_FILE_OPTION,
    root_dir: Path | None = ROOT_DIR_OPTION,
    launcher_dir: Path | None = LAUNCHER_DIR_OPTION,
    marker_env: str | None = MARKER_OPTION,
    wait_mode: str | None = WAIT_MODE_OPTION,
    wait_seconds: float | None = WAIT_SECONDS_OPTION,
    wait_timeout: float | None = WAIT_TIMEOUT_OPTION,
    node: int | None = NODE_OPTION,
    timeout: int | None = TIMEOUT_OPTION,
    always_cleanup: bool | None = ALWAYS_CLEANUP_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    report_file: Path | None = REPORT_FILE_OPTION,
) -> None:
    """Run the nightly sync smoke test (CI only)."""
    try:
        config = _load_config(config_file, env_file)
    except typer.BadParameter:
        # Outside CI the marker diagnostic takes precedence over config problems.
        if not dry_run:
            try:
                check_environment_marker(marker_env or DEFAULT_MARKER_ENV)
            except HarnessError as exc:
                _exit_with(exc)
        raise
    nightly_config = _apply_nightly_overrides(
        config.nightly,
        root_dir=root_dir,
        launcher_dir=launcher_dir,
        marker_env=marker_env,
        wait_mode=wait_mode,
        wait_seconds=wait_seconds,
        wait_timeout=wait_timeout,
        node=node,
        timeout=timeout,
        always_cleanup=always_cleanup,
    )
    if dry_run:
        _print_plan(describe_nightly(nightly_config))
        return

    try:
        report = run_nightly(nightly_config, executor=DEFAULT_EXECUTOR, sleeper=DEFAULT_SLEEPER)
    except StepFailedError as exc:
        if exc.report is not None:
            _print_report(exc.report)
            _write_report(exc.report, report_file)
        _exit_with(exc)
    except HarnessError as exc:
        _exit_with(exc)

    _print_report(report)
    _write_report(report, report_file)
    console.print("[green]Nightly run completed successfully.[/green]")


@app.command()
def plan(
    config_file: Path | None = CONFIG_OPTION,
    env_file: list[Path] | None = ENV_FILE_OPTION,
) -> None:
    """Show the nightly steps and commands without running them."""
    config = _load_config(config_file, env_file)
    _print_plan(describe_nightly(config.nightly))


def _metrics_config(
    config_file: Path | None,
    env_file: list[Path] | None,
    *,
    output_dir: Path | None,
    assets_dir: Path | None,
    node_count: int | None,
) -> MetricsConfig:
    config = _load_config(config_file, env_file)
    return config.metrics.model_copy(
        update=_without_none({"output_dir": output_dir, "assets_dir": assets_dir, "node_count": node_count}),
    )


@metrics_app.command("config")
def metrics_config(
    config_file: Path | None = CONFIG_OPTION,
    env_file: list[Path] | None = ENV_FILE_OPTION,
    output_dir: Path | None = OUTPUT_DIR_OPTION,
    assets_dir: Path | None = ASSETS_DIR_OPTION,
    node_count: int | None = NODE_COUNT_OPTION,
    stdout: bool = STDOUT_OPTION,
) -> None:
    """Generate the Prometheus scrape configuration only."""
    metrics = _metrics_config(config_file, env_file, output_dir=output_dir, assets_dir=assets_dir, node_count=node_count)
    try:
        content = generate_config(metrics)
        if stdout:
            typer.echo(content, nl=False)
            return
        path = write_prometheus_config(metrics.output_dir or Path.cwd(), content)
    except HarnessError as exc:
        _exit_with(exc)
    console.print(f"[green]Prometheus configuration written to {path}[/green]")


@metrics_app.command("launch")
def metrics_launch(
    config_file: Path | None = CONFIG_OPTION,
    env_file: list[Path] | None = ENV_FILE_OPTION,
    output_dir: Path | None = OUTPUT_DIR_OPTION,
    assets_dir: Path | None = ASSETS_DIR_OPTION,
    node_count: int | None = NODE_COUNT_OPTION,
) -> None:
    """Generate prometheus.yml, then exec a Prometheus container on the host network."""
    metrics = _metrics_config(config_file, env_file, output_dir=output_dir, assets_dir=assets_dir, node_count=node_count)
    try:
        launch_prometheus(metrics, exec_fn=EXEC_FUNCTION)
    except HarnessError as exc:
        _exit_with(exc)


@app.command()
def check() -> None:
    """Report whether the external binaries used by the harness are installed."""
    table = Table(title="Required Binaries")
    table.add_column("Binary", style="bold")
    table.add_column("Status")
    table.add_column("Path", overflow="fold")
    table.add_column("Version", overflow="fold")
    missing: list[str] = []
    for status in check_required_binaries():
        if status.available:
            table.add_row(status.name, "[green]available[/green]", status.path or "", status.version or "")
        else:
            table.add_row(status.name, "[red]missing[/red]", status.path or "", escape(status.error or ""))
            missing.append(status.name)
    console.print(table)
    if missing:
        console.print("[yellow]Missing binaries: " + ", ".join(missing) + "[/yellow]")
        raise typer.Exit(code=1)
    console.print("[green]All required binaries are available.[/green]")


def _write_template(path: Path, content: str, *, force: bool) -> bool:
    if path.exists() and not force:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content.rstrip() + "\n", encoding="utf-8")
    return True


@app.command()
def init(target: Path = INIT_TARGET_ARGUMENT, force: bool = INIT_FORCE_OPTION) -> None:
    """Write a template configuration file and .env example."""
    target = target.resolve()
    target.mkdir(parents=True, exist_ok=True)
    templates = {
        DEFAULT_CONFIG_NAME: INIT_CONFIG_TEMPLATE,
        ".env.example": INIT_ENV_TEMPLATE,
    }
    skipped: list[str] = []
    for name, content in templates.items():
        path = target / name
        created = _write_template(path, content, force=force)
        status: Literal["created", "skipped"] = "created" if created else "skipped"
        color = "green" if created else "yellow"
        console.print(f"[{color}]{status.capitalize()} {path}[/]")
        if not created:
            skipped.append(name)
    if skipped and not force:
        console.print(
            "[yellow]Some files already existed. Use --force to overwrite them.[/yellow]",
        )
        raise typer.Exit(code=1)
    console.print(f"[green]Configuration scaffolding written to {target}[/green]")


def main() -> None:  # pragma: no cover - Typer entry point
    """Invoke the Typer application."""
    app()


if __name__ == "__main__":  # pragma: no cover - script entry point
    main()
