"""Tests for the `nctl-harness metrics` and `check` commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import yaml
from typer.testing import CliRunner

from nctl_harness import cli
from nctl_harness.cli import app
from nctl_harness.tools import binaries, process
from nctl_harness.tools.process import CommandResult

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path


runner = CliRunner()


def test_metrics_config_stdout(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """--stdout prints the scrape configuration without writing a file."""
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(app, ["--log-level", "ERROR", "metrics", "config", "--stdout", "--node-count", "2"])

    assert result.exit_code == 0
    document = yaml.safe_load(result.stdout)
    targets = [entry["targets"][0] for entry in document["scrape_configs"][0]["static_configs"]]
    assert targets == ["127.0.0.1:14101", "127.0.0.1:14102"]
    assert not (tmp_path / "prometheus.yml").exists()


def test_metrics_config_writes_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """The file is written into the requested output directory."""
    monkeypatch.chdir(tmp_path)
    output_dir = tmp_path / "prom"

    result = runner.invoke(app, ["metrics", "config", "--output-dir", str(output_dir)])

    assert result.exit_code == 0
    assert "Prometheus configuration written" in result.stdout
    assert "job_name: nctl" in (output_dir / "prometheus.yml").read_text(encoding="utf-8")


def test_metrics_launch_execs_podman(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Launch hands the process over to podman with the generated file mounted."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(process.shutil, "which", lambda name: f"/usr/bin/{name}")
    calls: list[list[str]] = []

    def fake_exec(file: str, args: Sequence[str]) -> None:
        assert (tmp_path / "prometheus.yml").stat().st_size > 0
        calls.append([file, *args])
        raise SystemExit(0)

    monkeypatch.setattr(cli, "EXEC_FUNCTION", fake_exec)

    result = runner.invoke(app, ["metrics", "launch"])

    assert result.exit_code == 0
    assert calls[0][0] == "podman"
    assert "--net=host" in calls[0]
    assert "9090:9090" in calls[0]


def test_metrics_launch_without_podman(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """A missing container runtime exits with status 127."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(process.shutil, "which", lambda _name: None)
    monkeypatch.setattr(cli, "EXEC_FUNCTION", lambda _file, _args: pytest.fail("exec must not be called"))

    result = runner.invoke(app, ["metrics", "launch"])

    assert result.exit_code == 127
    assert "podman" in result.stdout


def test_check_reports_missing_binaries(monkeypatch: pytest.MonkeyPatch) -> None:
    """The check command fails when a required binary is missing."""
    monkeypatch.setattr(binaries.shutil, "which", lambda _name: None)

    result = runner.invoke(app, ["check"])

    assert result.exit_code == 1
    assert "Missing binaries" in result.stdout


def test_check_passes_when_binaries_present(monkeypatch: pytest.MonkeyPatch) -> None:
    """All binaries available yields a zero exit status."""

    def fake_run(args: Sequence[str], **_kwargs: object) -> CommandResult:
        return CommandResult(args=tuple(args), returncode=0, duration_ms=1, output=f"{args[0]} 1.0\n")

    monkeypatch.setattr(binaries.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(binaries, "run_command", fake_run)

    result = runner.invoke(app, ["check"])

    assert result.exit_code == 0
    assert "All required binaries are available" in result.stdout
