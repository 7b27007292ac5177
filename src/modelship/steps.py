"""Runner for external pipeline steps.

Build, unit test and end-to-end test steps are opaque to the promotion
engine: each is a shell command that either succeeds (exit code 0) or
fails. Steps run in order and the first failure stops the run.
"""

from __future__ import annotations

import subprocess
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field

from modelship.errors import StepFailedError
from modelship.schemas.promotion import StepConfig
from modelship.telemetry.tracing import create_span

logger = structlog.get_logger(__name__)

# Output tail kept in results and error messages
_OUTPUT_TAIL_CHARS = 2000


class StepResult(BaseModel):
    """Outcome of one successful step.

    Attributes:
        name: Step name.
        returncode: Process exit code.
        duration_ms: Wall-clock duration in milliseconds.
        stdout: Tail of the captured standard output.
        stderr: Tail of the captured standard error.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    returncode: int
    duration_ms: int = Field(..., ge=0)
    stdout: str = ""
    stderr: str = ""


def _tail(text: str | bytes | None) -> str:
    if text is None:
        return ""
    if isinstance(text, bytes):
        text = text.decode(errors="replace")
    return text[-_OUTPUT_TAIL_CHARS:]


class StepRunner:
    """Run configured steps as subprocesses.

    Attributes:
        steps: Steps in execution order.
        cwd: Working directory of every step.
        env: Environment of every step; inherits the caller's when None.
    """

    def __init__(
        self,
        steps: Sequence[StepConfig],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.steps = list(steps)
        self.cwd = cwd
        self.env = dict(env) if env is not None else None

    def run(self, step: StepConfig) -> StepResult:
        """Run a single step.

        Raises:
            StepFailedError: If the command exits non-zero, times out or
                cannot be started.
        """
        with create_span(
            f"modelship.step.{step.name}",
            attributes={"step": step.name, "timeout_seconds": step.timeout_seconds},
        ) as span:
            start_time = time.monotonic()
            logger.info(
                "step_started",
                step=step.name,
                command=step.command,
                timeout_seconds=step.timeout_seconds,
            )
            try:
                result = subprocess.run(
                    step.command,
                    shell=True,
                    capture_output=True,
                    text=True,
                    cwd=self.cwd,
                    env=self.env,
                    timeout=step.timeout_seconds,
                )
            except subprocess.TimeoutExpired as e:
                logger.warning("step_timed_out", step=step.name, timeout_seconds=step.timeout_seconds)
                raise StepFailedError(
                    step.name, f"timed out after {step.timeout_seconds}s"
                ) from e
            except OSError as e:
                raise StepFailedError(step.name, f"could not start: {e}") from e

            duration_ms = int((time.monotonic() - start_time) * 1000)
            span.set_attribute("duration_ms", duration_ms)
            span.set_attribute("returncode", result.returncode)

            if result.returncode != 0:
                reason = f"exit code {result.returncode}"
                if result.stderr:
                    reason = f"{reason}: {_tail(result.stderr).strip()}"
                logger.warning(
                    "step_failed",
                    step=step.name,
                    returncode=result.returncode,
                    duration_ms=duration_ms,
                )
                raise StepFailedError(step.name, reason, returncode=result.returncode)

            logger.info("step_passed", step=step.name, duration_ms=duration_ms)
            return StepResult(
                name=step.name,
                returncode=result.returncode,
                duration_ms=duration_ms,
                stdout=_tail(result.stdout),
                stderr=_tail(result.stderr),
            )

    def run_all(self) -> list[StepResult]:
        """Run every step in order, stopping at the first failure."""
        return [self.run(step) for step in self.steps]


__all__ = ["StepResult", "StepRunner"]
