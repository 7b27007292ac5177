"""CLI utility functions and error handling.

This module provides shared utilities for the modelship CLI, including:
- Exit code constants
- Output helpers for consistent stderr/stdout usage
- Failure reporting for PromotionError subclasses

Errors are printed as plain text to stderr (or as a JSON document on stdout
with ``--output json``) and the process exits with the exception's
``exit_code`` so that CI pipelines can branch on the failure kind.
"""

from __future__ import annotations

import json
import sys
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING

import click
import structlog

from modelship.errors import PromotionError
from modelship.schemas.promotion import RunStatus

if TYPE_CHECKING:
    from typing import NoReturn

    from modelship.schemas.promotion import PromoterConfig

logger = structlog.get_logger(__name__)


class ExitCode(IntEnum):
    """Exit codes for CLI commands.

    Values match the ``exit_code`` of the corresponding PromotionError
    subclasses in modelship.errors.
    """

    SUCCESS = 0
    """Promotion applied (committed or review requested)."""

    GENERAL_ERROR = 1
    """General error (catch-all for failures)."""

    CONFIGURATION_ERROR = 2
    """Invalid configuration, unknown strategy or missing credentials."""

    NO_CHANGES = 3
    """Nothing to promote; every environment already matches the descriptor."""

    CONFLICT = 4
    """Remote advanced past the baseline; re-run the promotion."""

    NETWORK_ERROR = 5
    """State store or review gateway unreachable."""

    PARTIAL_PROMOTION = 6
    """Review branch pushed but the change request is incomplete."""

    REVIEW_GATEWAY_ERROR = 7
    """Review gateway rejected a call."""

    STEP_FAILED = 8
    """External pipeline step failed."""

    DESCRIPTOR_NOT_FOUND = 9
    """Deployment descriptor missing, not a directory or empty."""

    STATE_STORE_ERROR = 10
    """Local state store checkout could not be updated."""


def _with_context(prefix: str, message: str, context: dict[str, str | int | bool | None]) -> str:
    context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
    if context_str:
        return f"{prefix}: {message} ({context_str})"
    return f"{prefix}: {message}"


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Example:
        error("Push rejected", branch="master")
        # Output: Error: Push rejected (branch=master)
    """
    click.echo(_with_context("Error", message, context), err=True)


def error_exit(
    message: str,
    exit_code: ExitCode = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with ``exit_code``."""
    error(message, **context)
    sys.exit(exit_code)


def warn(message: str, **context: str | int | bool | None) -> None:
    """Print a warning message to stderr."""
    click.echo(_with_context("Warning", message, context), err=True)


def success(message: str) -> None:
    """Print a success message to stdout."""
    click.echo(message)


def info(message: str) -> None:
    """Print an informational message to stderr.

    Used for progress updates that should not be captured by stdout
    redirection.
    """
    click.echo(message, err=True)


def get_exit_code_from_exception(exc: BaseException) -> int:
    """Map an exception to its CLI exit code.

    Args:
        exc: Exception that was raised.

    Returns:
        The exception's ``exit_code`` for PromotionError subclasses,
        GENERAL_ERROR otherwise.
    """
    if isinstance(exc, PromotionError):
        return int(exc.exit_code)
    return int(ExitCode.GENERAL_ERROR)


def report_failure(exc: Exception, output: str, command: str) -> NoReturn:
    """Report a failed command and exit with the matching code.

    Args:
        exc: The failure.
        output: Output format ("table" or "json").
        command: Command name used in the log event.
    """
    exit_code = get_exit_code_from_exception(exc)
    if not isinstance(exc, PromotionError):
        logger.error(
            f"{command}_command_failed",
            error_type=type(exc).__name__,
            error_summary=str(exc)[:200] if str(exc) else "Unknown error",
        )

    if output == "json":
        payload: dict[str, object] = {
            "status": RunStatus.FAILED.value,
            "error": str(exc),
            "error_type": type(exc).__name__,
            "exit_code": exit_code,
            "retryable": getattr(exc, "retryable", False),
        }
        for attribute in ("environment", "branch", "request_id", "step"):
            value = getattr(exc, attribute, None)
            if value is not None:
                payload[attribute] = value
        completed = getattr(exc, "completed", ())
        if completed:
            payload["completed"] = [record.model_dump(mode="json") for record in completed]
        click.echo(json.dumps(payload, indent=2))
    else:
        error(str(exc))
    sys.exit(exit_code)


@contextmanager
def checkout_directory(config: PromoterConfig) -> Iterator[Path]:
    """Yield the state store checkout directory.

    The configured ``workdir`` is kept between runs; otherwise a temporary
    directory is created and removed afterwards.
    """
    if config.workdir:
        yield Path(config.workdir)
        return
    with tempfile.TemporaryDirectory(prefix="modelship-") as tmp:
        yield Path(tmp) / "state"


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    envvar="MODELSHIP_CONFIG",
    help="Path to the promoter configuration file (YAML).",
    metavar="PATH",
)

output_option = click.option(
    "--output",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)


__all__ = [
    "ExitCode",
    "checkout_directory",
    "config_option",
    "error",
    "error_exit",
    "get_exit_code_from_exception",
    "info",
    "output_option",
    "report_failure",
    "success",
    "warn",
]
