"""Command-line interface for modelship.

Example:
    $ modelship --version
    $ modelship promote build/descriptor --commit 3f2a9c1 --config modelship.yaml

Exit Codes:
    0: Promoted
    1: General error
    2: Configuration error
    3: No changes
    4: Push conflict
    5: Transport error
    6: Partial promotion
    7: Review gateway error
    8: Pipeline step failed
    9: Descriptor missing or empty
    10: State store checkout failed
"""

from __future__ import annotations

from modelship.cli.main import cli, main
from modelship.cli.utils import ExitCode, error, error_exit, success, warn

__all__ = ["ExitCode", "cli", "error", "error_exit", "main", "success", "warn"]
