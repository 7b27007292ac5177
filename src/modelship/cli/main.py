"""Main entry point for the modelship CLI.

Commands:
    modelship promote: Promote a built descriptor through every environment
    modelship run: Run pipeline steps, then promote
    modelship diff: Show which environments a descriptor would change
    modelship history: List commits recorded for an environment

Example:
    $ modelship --help
    $ modelship --log-format console promote build/descriptor --commit 3f2a9c1
"""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

import click

from modelship.cli.diff import diff_command
from modelship.cli.history import history_command
from modelship.cli.promote import promote_command, run_command
from modelship.telemetry.logging import configure_logging


def _get_version() -> str:
    """Get the modelship package version, or 'unknown' if not installed."""
    try:
        return get_version("modelship")
    except PackageNotFoundError:
        return "unknown"


@click.group(
    name="modelship",
    help="modelship - Continuous delivery of ML models through a GitOps repository.",
    epilog="Use 'modelship <command> --help' for command-specific help.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.version_option(
    version=_get_version(),
    prog_name="modelship",
    message="%(prog)s %(version)s",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="MODELSHIP_LOG_LEVEL",
    help="Minimum level of structured logs written to stderr.",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "console"], case_sensitive=False),
    default="json",
    show_default=True,
    envvar="MODELSHIP_LOG_FORMAT",
    help="Structured log rendering.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, log_format: str) -> None:
    """Root command group for the modelship CLI."""
    ctx.ensure_object(dict)
    configure_logging(log_level=log_level, json_output=log_format.lower() == "json")


cli.add_command(promote_command)
cli.add_command(run_command)
cli.add_command(diff_command)
cli.add_command(history_command)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the modelship CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
