from __future__ import annotations

from pathlib import Path
import platform
import sys
from typing import TYPE_CHECKING

import nox

if TYPE_CHECKING:
    from nox.sessions import Session

nox.options.default_venv_backend = "uv"
nox.options.reuse_existing_virtualenvs = True

PYTHON = ["3.12", "3.13"]
COVER_MIN = 80


def constraints(session: Session) -> Path:
    """Generate constraints file path for the session."""
    filename = f"python{session.python}-{sys.platform}-{platform.machine()}.txt"
    return Path("constraints", filename)


def install_dev(session: Session) -> None:
    """Install the project with dev extras, pinned when a lock file exists."""
    lock = constraints(session)
    if lock.exists():
        session.install("-c", lock.as_posix(), "-e", ".[dev]")
    else:
        session.install("-e", ".[dev]")


@nox.session(python=PYTHON[-1], venv_backend="uv")
def lock(session: Session) -> None:
    """Lock dependencies."""
    filename = constraints(session)
    filename.parent.mkdir(exist_ok=True)
    session.run(
        "uv",
        "pip",
        "compile",
        "pyproject.toml",
        "--upgrade",
        "--quiet",
        "--all-extras",
        f"--output-file={filename}",
    )


@nox.session(python=PYTHON[-1], tags=["lint"])
def lint(session: Session) -> None:
    """Run Ruff lint and format checks."""
    session.install("ruff")
    session.run("ruff", "check")
    session.run("ruff", "format", "--check")


@nox.session(python=PYTHON[-1], tags=["typing"])
def typing(session: Session) -> None:
    """Run type checking with Pyright."""
    install_dev(session)
    session.run("pyright")


@nox.session(python=PYTHON, tags=["test"])
def test(session: Session) -> None:
    """Run the unit tests with coverage."""
    install_dev(session)
    session.run("pytest", "--cov=nctl_harness", f"--cov-fail-under={COVER_MIN}", *session.posargs)


@nox.session(python=PYTHON[-1], tags=["smoke"])
def smoke(session: Session) -> None:
    """Exercise the installed CLI without touching a network."""
    install_dev(session)
    session.run("nctl-harness", "plan")
    session.run("nctl-harness", "metrics", "config", "--stdout")


@nox.session(python=PYTHON[-1], tags=["ci"])
def ci(session: Session) -> None:
    """Run all CI checks."""
    session.notify("lint")
    session.notify("typing")
    session.notify("test")
    session.notify("smoke")
