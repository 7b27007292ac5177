"""Diff command: report what a promotion would change, without writing."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from modelship.cli.utils import (
    ExitCode,
    checkout_directory,
    config_option,
    output_option,
    report_failure,
)
from modelship.config import load_config
from modelship.orchestrator import PromotionOrchestrator
from modelship.state_store import GitStateStore

if TYPE_CHECKING:
    from modelship.schemas.promotion import ChangeDetection


def _format_detections(detections: list[ChangeDetection], output_format: str) -> str:
    if output_format == "json":
        return json.dumps(
            {
                "changed": any(detection.changed for detection in detections),
                "environments": [detection.model_dump(mode="json") for detection in detections],
            },
            indent=2,
        )

    lines = []
    for detection in detections:
        if not detection.changed:
            lines.append(f"{detection.environment}: unchanged")
            continue
        suffix = " (first promotion)" if detection.first_promotion else ""
        lines.append(
            f"{detection.environment}: {len(detection.modified_paths)} file(s) differ{suffix}"
        )
        lines.extend(f"    {detection.path}/{path}" for path in detection.modified_paths)
    return "\n".join(lines)


@click.command(
    name="diff",
    help="Show which environments a descriptor would change.",
    epilog="""
Exit Codes:
    0 - At least one environment would change
    3 - Every environment already matches the descriptor
""",
)
@click.argument("descriptor", type=click.Path(file_okay=False, path_type=Path))
@config_option
@output_option
def diff_command(descriptor: Path, config_path: Path | None, output: str) -> None:
    """Compare DESCRIPTOR with the recorded state of every environment."""
    try:
        config = load_config(config_path)
        with checkout_directory(config) as workdir:
            orchestrator = PromotionOrchestrator(
                config,
                store=GitStateStore.from_config(config, workdir),
            )
            detections = orchestrator.detect(descriptor)
    except Exception as e:
        report_failure(e, output, "diff")

    click.echo(_format_detections(detections, output))
    if not any(detection.changed for detection in detections):
        sys.exit(ExitCode.NO_CHANGES)
    sys.exit(ExitCode.SUCCESS)


__all__: list[str] = ["diff_command"]
