"""Promote and run command implementations.

``modelship promote`` promotes an already built deployment descriptor through
every configured environment. ``modelship run`` first runs the configured
external steps (build, unit tests, end-to-end tests) and promotes only when
all of them pass.

Example:
    $ modelship promote build/descriptor --commit 3f2a9c1 --config modelship.yaml
    $ modelship promote build/descriptor --commit 3f2a9c1 --output json
    $ modelship run build/descriptor --commit 3f2a9c1 --author jane
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click
import structlog

from modelship.cli.utils import (
    ExitCode,
    checkout_directory,
    config_option,
    info,
    output_option,
    report_failure,
    success,
)
from modelship.config import load_config
from modelship.orchestrator import PromotionOrchestrator
from modelship.schemas.promotion import PromotionOutcome, RunStatus
from modelship.state_store import GitStateStore
from modelship.steps import StepRunner

if TYPE_CHECKING:
    from modelship.schemas.promotion import PromoterConfig, PromotionRunResult

logger = structlog.get_logger(__name__)

_EXIT_CODE_HELP = """
Exit Codes:
    0 - Promoted (committed and/or review requested)
    1 - General error
    2 - Configuration error (unknown strategy, missing credentials)
    3 - No changes: every environment already matches
    4 - Push conflict: remote advanced, re-run the promotion
    5 - State store or review gateway unreachable
    6 - Partial promotion: branch pushed, request incomplete
    7 - Review gateway rejected the request
    8 - External step failed (run only)
    9 - Deployment descriptor missing or empty
    10 - State store checkout could not be updated
"""


def _format_run_result(result: PromotionRunResult, output_format: str) -> str:
    """Format a promotion run result for CLI output.

    Args:
        result: Result of the promotion run.
        output_format: Output format ("table" or "json").

    Returns:
        Formatted string for display.
    """
    if output_format == "json":
        payload = {
            "status": result.status.value,
            "commit_sha": result.commit_sha,
            "environments": [record.model_dump(mode="json") for record in result.records],
        }
        return json.dumps(payload, indent=2)

    lines = ["", f"Source commit: {result.commit_sha}", f"Status:        {result.status.value}", ""]
    for record in result.records:
        lines.append(f"  {record.environment} ({record.strategy}): {record.outcome.value}")
        if record.outcome == PromotionOutcome.NO_OP:
            continue
        lines.append(f"      Branch:  {record.branch}")
        lines.append(f"      Commit:  {record.commit_sha}")
        lines.append(f"      Files:   {len(record.modified_paths)} changed")
        if record.change_request is not None:
            request = record.change_request
            lines.append(f"      Request: #{request.request_id}")
            if request.url:
                lines.append(f"      URL:     {request.url}")
            lines.append(f"      Approver: {request.assignee or 'unassigned'}")
    return "\n".join(lines)


def _promote(
    config: PromoterConfig,
    descriptor: Path,
    commit: str,
    message: str,
    author: str,
    email: str,
    output: str,
) -> None:
    with checkout_directory(config) as workdir:
        orchestrator = PromotionOrchestrator(
            config,
            store=GitStateStore.from_config(config, workdir),
        )
        result = orchestrator.promote(
            descriptor,
            commit,
            message=message,
            author=author,
            email=email,
        )

    click.echo(_format_run_result(result, output))
    if result.status == RunStatus.NO_OP:
        if output == "table":
            info("Nothing to promote: every environment already matches the descriptor")
        sys.exit(ExitCode.NO_CHANGES)
    if output == "table":
        success(f"Promoted {commit[:12]}")
    sys.exit(ExitCode.SUCCESS)


_descriptor_argument = click.argument(
    "descriptor",
    type=click.Path(file_okay=False, path_type=Path),
)
_commit_option = click.option(
    "--commit",
    "commit",
    required=True,
    envvar="MODELSHIP_COMMIT_SHA",
    help="Source commit the descriptor was built from.",
    metavar="SHA",
)
_message_option = click.option("--message", "-m", default="", help="Commit message text.")
_author_option = click.option("--author", default="", help="Author name recorded in the commit.")
_email_option = click.option("--email", default="", help="Author email recorded in the commit.")


@click.command(
    name="promote",
    help="Promote a built deployment descriptor through every environment.",
    epilog=_EXIT_CODE_HELP,
)
@_descriptor_argument
@_commit_option
@config_option
@_message_option
@_author_option
@_email_option
@output_option
def promote_command(
    descriptor: Path,
    commit: str,
    config_path: Path | None,
    message: str,
    author: str,
    email: str,
    output: str,
) -> None:
    """Promote DESCRIPTOR to staging, then propose it for production.

    \b
    DESCRIPTOR: Directory holding the built deployment descriptor.
    """
    if output == "table":
        info(f"Promoting {descriptor} (commit {commit[:12]})")
    try:
        config = load_config(config_path)
        _promote(config, descriptor, commit, message, author, email, output)
    except Exception as e:
        report_failure(e, output, "promote")


@click.command(
    name="run",
    help="Run the configured pipeline steps, then promote.",
    epilog=_EXIT_CODE_HELP,
)
@_descriptor_argument
@_commit_option
@config_option
@_message_option
@_author_option
@_email_option
@output_option
def run_command(
    descriptor: Path,
    commit: str,
    config_path: Path | None,
    message: str,
    author: str,
    email: str,
    output: str,
) -> None:
    """Run build and test steps, then promote DESCRIPTOR.

    \b
    DESCRIPTOR: Directory the build step writes the descriptor to.
    """
    try:
        config = load_config(config_path)
        runner = StepRunner(config.steps, cwd=Path.cwd())
        for step in runner.steps:
            if output == "table":
                info(f"Running step {step.name}: {step.command}")
            runner.run(step)
        _promote(config, descriptor, commit, message, author, email, output)
    except Exception as e:
        report_failure(e, output, "run")


__all__: list[str] = ["promote_command", "run_command"]
