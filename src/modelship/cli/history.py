"""History command: list promotions recorded for one environment."""

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
    error_exit,
    output_option,
    report_failure,
)
from modelship.config import load_config
from modelship.state_store import GitStateStore

if TYPE_CHECKING:
    from modelship.state_store import HistoryEntry


def _format_history(entries: list[HistoryEntry], output_format: str) -> str:
    if output_format == "json":
        return json.dumps([entry.model_dump(mode="json") for entry in entries], indent=2)

    lines = []
    for entry in entries:
        stamp = entry.committed_at.isoformat()
        if entry.message is None:
            summary = entry.raw_message.splitlines()[0] if entry.raw_message else ""
            lines.append(f"{entry.commit_sha[:12]}  {stamp}  {summary}")
            continue
        lines.append(f"{entry.commit_sha[:12]}  {stamp}  {entry.message.action}")
        if entry.message.author:
            lines.append(f"    Author:  {entry.message.author} <{entry.message.email}>")
        if entry.message.message:
            lines.append(f"    Message: {entry.message.message}")
    return "\n".join(lines)


@click.command(name="history", help="List commits recorded for an environment.")
@config_option
@click.option("--env", "environment", required=True, help="Environment name.", metavar="NAME")
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=20,
    show_default=True,
    help="Maximum number of commits to list.",
)
@output_option
def history_command(
    config_path: Path | None,
    environment: str,
    limit: int,
    output: str,
) -> None:
    """List the newest commits touching the ENV subtree, newest first."""
    try:
        config = load_config(config_path)
        env = next((e for e in config.environments if e.name == environment), None)
        if env is None:
            error_exit(
                f"Unknown environment '{environment}'",
                exit_code=ExitCode.CONFIGURATION_ERROR,
                known=", ".join(e.name for e in config.environments),
            )
        with checkout_directory(config) as workdir:
            store = GitStateStore.from_config(config, workdir)
            store.sync()
            entries = store.history(env.path, limit=limit)
    except Exception as e:
        report_failure(e, output, "history")

    click.echo(_format_history(entries, output))
    sys.exit(ExitCode.SUCCESS)


__all__: list[str] = ["history_command"]
