"""Fail-fast execution of an ordered list of pipeline steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
import time
from typing import TYPE_CHECKING, Callable, NoReturn, Sequence

from nctl_harness.domain.models import PlannedStep, RunReport, StepResult
from nctl_harness.errors import HarnessError, StepFailedError
from nctl_harness.logger import logger
from nctl_harness.tools.process import CommandResult, format_command

if TYPE_CHECKING:
    from pathlib import Path

    from nctl_harness.domain.models import StepName

__all__ = ["PipelineRunner", "Step"]

StepAction = Callable[[], CommandResult | None]


@dataclass(slots=True)
class Step:
    """A named unit of work; ``action`` returns a ``CommandResult`` for external commands."""

    name: StepName
    description: str
    action: StepAction
    command: list[str] | None = None
    cwd: Path | None = None

    def plan(self) -> PlannedStep:
        """Describe this step without running it."""
        return PlannedStep(name=self.name, description=self.description, command=self.command, cwd=self.cwd)


@dataclass(slots=True)
class PipelineRunner:
    """Run steps in order, stopping at the first failure.

    ``on_failure`` steps are attempted best-effort after a failure, except those
    that already ran. Their own failures are recorded but never replace the
    original error.
    """

    on_failure: Sequence[Step] = ()
    report: RunReport = field(default_factory=lambda: RunReport(started_at=datetime.now(UTC)))

    def run(self, steps: Sequence[Step]) -> RunReport:
        """Execute ``steps`` and return the report, or raise ``StepFailedError``."""
        for index, step in enumerate(steps):
            result = self._execute(step)
            self.report.steps.append(result)
            if result.status == "failed":
                for remaining in steps[index + 1 :]:
                    self.report.steps.append(StepResult(name=remaining.name, status="skipped", command=remaining.command))
                self._run_failure_handlers()
                returncode = result.returncode if result.returncode is not None else 1
                self._fail(step.name, returncode, result.error)
        self.report.succeeded = True
        self.report.exit_code = 0
        self.report.ended_at = datetime.now(UTC)
        return self.report

    def _execute(self, step: Step) -> StepResult:
        logger.info(f"[{step.name}] {step.description}")
        if step.command:
            logger.info(f"[{step.name}] $ {format_command(step.command)}")
        started_at = datetime.now(UTC)
        start = time.perf_counter()
        error: str | None = None
        try:
            outcome = step.action()
        except HarnessError as exc:
            returncode = exc.exit_code
            error = str(exc)
        except OSError as exc:
            returncode = 1
            error = str(exc)
        else:
            returncode = outcome.returncode if outcome is not None else 0
        duration_ms = int((time.perf_counter() - start) * 1000)
        status = "succeeded" if returncode == 0 else "failed"
        if status == "failed":
            logger.error(f"[{step.name}] failed with exit status {returncode}" + (f": {error}" if error else ""))
        else:
            logger.success(f"[{step.name}] done in {duration_ms} ms")
        return StepResult(
            name=step.name,
            status=status,
            command=step.command,
            returncode=returncode,
            started_at=started_at,
            ended_at=datetime.now(UTC),
            duration_ms=duration_ms,
            error=error,
        )

    def _run_failure_handlers(self) -> None:
        attempted = {result.name for result in self.report.steps if result.status != "skipped"}
        for handler in self.on_failure:
            if handler.name in attempted:
                continue
            logger.warning(f"[{handler.name}] running after failure")
            self.report.steps.append(self._execute(handler))

    def _fail(self, step: str, returncode: int, detail: str | None) -> NoReturn:
        self.report.succeeded = False
        self.report.ended_at = datetime.now(UTC)
        error = StepFailedError(step, returncode, detail=detail)
        self.report.exit_code = error.exit_code
        error.report = self.report
        raise error
