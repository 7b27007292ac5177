"""Correlation tokens and review branch names.

Every review-gated promotion is tagged with a freshly generated random token.
The token names the review branch and is quoted in the change request body,
so concurrent promotions from different commits never share a branch.

The orchestrator accepts any ``TokenFactory``; tests inject a deterministic one.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable

TokenFactory = Callable[[], str]
"""Zero-argument callable returning a new unique token."""


def generate_token() -> str:
    """Return a random UUID4 string.

    Examples:
        >>> len(generate_token())
        36
    """
    return str(uuid.uuid4())


def review_branch_name(prefix: str, environment: str, token: str) -> str:
    """Build the review branch name for an environment promotion.

    Examples:
        >>> review_branch_name("promote", "production", "4f1c")
        'promote/production/4f1c'
    """
    return f"{prefix.rstrip('/')}/{environment}/{token}"


__all__ = ["TokenFactory", "generate_token", "review_branch_name"]
