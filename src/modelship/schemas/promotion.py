"""Promotion schemas for modelship.

This module defines Pydantic v2 schemas for promoting deployment descriptors
through the environments recorded in a GitOps state store.

Key Components:
    PromotionStrategyKind: Built-in strategy kinds (direct, review-gated)
    PromotionOutcome: Outcome of one environment promotion
    RunStatus: Outcome of one promotion run
    Credentials: Identity/secret pair for the state store and review gateway
    EnvironmentConfig: Per-environment promotion configuration
    StepConfig: External pipeline step definition
    PromoterConfig: Top-level promoter configuration
    CommitMessage: Structured, machine-parseable commit message
    ChangeDetection: Change Detector result
    ChangeRequest: Review request created for a review-gated environment
    PromotionRecord: Outcome of one environment promotion attempt
    PromotionRunResult: Outcome of a whole promotion run
"""

from __future__ import annotations

import json
import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

# =============================================================================
# Enums
# =============================================================================


class PromotionStrategyKind(str, Enum):
    """Built-in promotion strategy kinds.

    Attributes:
        DIRECT: Commit straight to the default branch (staging-like).
        REVIEW_GATED: Push a new branch and open a change request (production-like).

    Examples:
        >>> PromotionStrategyKind("review-gated")
        <PromotionStrategyKind.REVIEW_GATED: 'review-gated'>
    """

    DIRECT = "direct"
    REVIEW_GATED = "review-gated"


class PromotionOutcome(str, Enum):
    """Outcome of promoting one environment.

    Attributes:
        NO_OP: Recorded state already equals the candidate; nothing written.
        COMMITTED: Candidate committed and pushed to the default branch.
        REVIEW_REQUESTED: Candidate pushed to a branch with an open change request.
    """

    NO_OP = "no_op"
    COMMITTED = "committed"
    REVIEW_REQUESTED = "review_requested"


class RunStatus(str, Enum):
    """Overall outcome of a promotion run, as seen by the invoking pipeline."""

    PROMOTED = "promoted"
    NO_OP = "no_op"
    FAILED = "failed"


# =============================================================================
# Configuration
# =============================================================================

_ENVIRONMENT_NAME_PATTERN = r"^[a-z][a-z0-9_-]*$"


class Credentials(BaseModel):
    """Identity/secret pair shared by the state store and the review gateway.

    Attributes:
        username: Account identity (e.g., a bot user).
        token: Secret (password or personal access token).

    Examples:
        >>> creds = Credentials(username="ci-bot", token="s3cr3t")
        >>> creds.token
        SecretStr('**********')
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    username: str = Field(..., min_length=1, description="Account identity")
    token: SecretStr = Field(..., description="Password or access token")

    @field_validator("token")
    @classmethod
    def validate_token_not_empty(cls, v: SecretStr) -> SecretStr:
        """Reject empty secrets."""
        if not v.get_secret_value():
            raise ValueError("token must not be empty")
        return v


class EnvironmentConfig(BaseModel):
    """Per-environment promotion configuration.

    ``strategy`` is kept as a string so that unknown kinds surface as
    UnknownStrategyError from the orchestrator rather than as a parse error.

    Attributes:
        name: Environment name (e.g., "staging", "production").
        path: Subtree of the state store holding the environment's descriptors.
        strategy: Promotion strategy kind (``direct`` or ``review-gated``).
        approver: Identity assigned to change requests (review-gated only).

    Examples:
        >>> env = EnvironmentConfig(name="staging", path="staging", strategy="direct")
        >>> env.path
        'staging'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        ...,
        min_length=1,
        max_length=50,
        pattern=_ENVIRONMENT_NAME_PATTERN,
        description="Environment name",
    )
    path: str = Field(..., min_length=1, description="Subtree path in the state store")
    strategy: str = Field(..., min_length=1, description="Promotion strategy kind")
    approver: str | None = Field(default=None, description="Approver identity")

    @field_validator("path")
    @classmethod
    def validate_relative_path(cls, v: str) -> str:
        """Normalize the path and keep it inside the repository."""
        normalized = v.strip().strip("/")
        parts = normalized.split("/")
        if not normalized or any(part in ("", ".", "..") for part in parts):
            raise ValueError(f"path must be a relative path inside the repository: {v!r}")
        if normalized == ".git" or normalized.startswith(".git/"):
            raise ValueError("path must not point into .git")
        return normalized


class StepConfig(BaseModel):
    """External pipeline step (build, unit test, end-to-end test).

    Attributes:
        name: Step name used in logs and errors.
        command: Shell command to run.
        timeout_seconds: Optional upper bound; no timeout when unset.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Step name")
    command: str = Field(..., min_length=1, description="Shell command")
    timeout_seconds: int | None = Field(default=None, ge=1, description="Timeout")


_GIT_URL_REPOSITORY_PATTERN = re.compile(r"[:/]([^/:]+)/([^/]+?)(?:\.git)?/?$")


class PromoterConfig(BaseModel):
    """Top-level promoter configuration.

    Built once and passed to the PromotionOrchestrator at construction. When
    ``environments`` is omitted it is derived from ``staging_path`` (direct)
    and ``production_path`` (review-gated, assigned to ``approver_identity``),
    in that order.

    Attributes:
        state_store_url: Remote URL of the GitOps repository.
        staging_path: Subtree path of the staging environment.
        production_path: Subtree path of the production environment.
        approver_identity: Identity assigned to production change requests.
        credentials: Identity/secret pair for git and the review API.
        default_branch: Main line of the state store.
        review_api_url: Base URL of the review gateway API.
        repository: ``owner/name`` slug; derived from state_store_url if omitted.
        branch_prefix: Prefix of review branch names.
        commit_author_name: Git author/committer name.
        commit_author_email: Git author/committer email.
        workdir: Local checkout directory; a temporary directory when unset.
        environments: Ordered promotion path.
        steps: External pipeline steps run by ``modelship run``.

    Examples:
        >>> config = PromoterConfig(
        ...     state_store_url="https://github.com/acme/gitops.git",
        ...     staging_path="staging",
        ...     production_path="production",
        ...     approver_identity="release-manager",
        ... )
        >>> [env.name for env in config.environments]
        ['staging', 'production']
        >>> config.repository
        'acme/gitops'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    state_store_url: str = Field(..., min_length=1, description="GitOps repository URL")
    staging_path: str | None = Field(default=None, description="Staging subtree")
    production_path: str | None = Field(default=None, description="Production subtree")
    approver_identity: str | None = Field(default=None, description="Approver identity")
    credentials: Credentials | None = Field(default=None, description="Credential pair")
    default_branch: str = Field(default="master", min_length=1, description="Main line")
    review_api_url: str = Field(
        default="https://api.github.com",
        description="Review gateway API base URL",
    )
    repository: str | None = Field(default=None, description="owner/name slug")
    branch_prefix: str = Field(
        default="promote",
        pattern=r"^[A-Za-z0-9._/-]+$",
        description="Review branch prefix",
    )
    commit_author_name: str = Field(default="modelship", description="Git author name")
    commit_author_email: str = Field(
        default="modelship@localhost",
        description="Git author email",
    )
    workdir: str | None = Field(default=None, description="Local checkout directory")
    environments: list[EnvironmentConfig] = Field(
        default_factory=list,
        description="Ordered promotion path",
    )
    steps: list[StepConfig] = Field(default_factory=list, description="Pipeline steps")

    @model_validator(mode="before")
    @classmethod
    def derive_repository(cls, data: Any) -> Any:
        """Fill ``repository`` from the state store URL when possible."""
        if not isinstance(data, dict) or data.get("repository"):
            return data
        match = _GIT_URL_REPOSITORY_PATTERN.search(str(data.get("state_store_url") or ""))
        if match is None:
            return data
        return {**data, "repository": f"{match.group(1)}/{match.group(2)}"}

    @model_validator(mode="before")
    @classmethod
    def derive_environments(cls, data: Any) -> Any:
        """Derive the promotion path from the staging/production paths."""
        if not isinstance(data, dict) or data.get("environments"):
            return data
        environments: list[dict[str, Any]] = []
        if data.get("staging_path"):
            environments.append(
                {
                    "name": "staging",
                    "path": data["staging_path"],
                    "strategy": PromotionStrategyKind.DIRECT.value,
                }
            )
        if data.get("production_path"):
            environments.append(
                {
                    "name": "production",
                    "path": data["production_path"],
                    "strategy": PromotionStrategyKind.REVIEW_GATED.value,
                    "approver": data.get("approver_identity"),
                }
            )
        return {**data, "environments": environments}

    @field_validator("environments")
    @classmethod
    def validate_unique_environments(
        cls, v: list[EnvironmentConfig]
    ) -> list[EnvironmentConfig]:
        """Validate that environment names and paths are unique."""
        names = [env.name for env in v]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(f"Environment names must be unique. Duplicates: {duplicates}")
        paths = [env.path for env in v]
        for path in paths:
            overlapping = [
                other
                for other in paths
                if other != path and other.startswith(f"{path}/")
            ]
            if overlapping or paths.count(path) > 1:
                raise ValueError(f"Environment paths must not overlap: {path!r}")
        return v


# =============================================================================
# Commit messages
# =============================================================================


class CommitMessage(BaseModel):
    """Structured commit message recorded in the state store history.

    Rendered as a single-line JSON object with the keys ``Action``,
    ``Message``, ``Author`` and ``Email``. All fields except ``Action`` may be
    empty; the keys are always present.

    Examples:
        >>> msg = CommitMessage(action="Model promotion", author="jane")
        >>> msg.render()
        '{"Action": "Model promotion", "Message": "", "Author": "jane", "Email": ""}'
        >>> CommitMessage.parse(msg.render()) == msg
        True
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    action: str = Field(..., min_length=1, description="Kind of change")
    message: str = Field(default="", description="Free text")
    author: str = Field(default="", description="Actor name")
    email: str = Field(default="", description="Actor email")

    def render(self) -> str:
        """Render the message as stored in the commit."""
        return json.dumps(
            {
                "Action": self.action,
                "Message": self.message,
                "Author": self.author,
                "Email": self.email,
            }
        )

    @classmethod
    def parse(cls, text: str) -> CommitMessage | None:
        """Parse a commit message, returning None for unstructured messages."""
        try:
            data = json.loads(text.strip())
        except ValueError:
            return None
        if not isinstance(data, dict) or not data.get("Action"):
            return None
        return cls(
            action=str(data["Action"]),
            message=str(data.get("Message") or ""),
            author=str(data.get("Author") or ""),
            email=str(data.get("Email") or ""),
        )


# =============================================================================
# Results
# =============================================================================


class ChangeDetection(BaseModel):
    """Change Detector result for one environment.

    Attributes:
        environment: Environment name.
        path: Environment subtree path.
        baseline: Revision compared against.
        changed: Whether promotion would alter the recorded state.
        first_promotion: True when the path did not exist at the baseline.
        modified_paths: Added, modified and removed paths, relative to ``path``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    environment: str
    path: str
    baseline: str
    changed: bool
    first_promotion: bool = False
    modified_paths: list[str] = Field(default_factory=list)


class ChangeRequest(BaseModel):
    """Change request opened for a review-gated environment.

    Attributes:
        request_id: Identifier returned by the review gateway.
        branch: Head branch holding the proposed state.
        base: Target base branch.
        title: Request title.
        body: Request body, carrying the correlation token.
        assignee: Approver assigned to the request.
        url: Web URL of the request, when the gateway returns one.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    request_id: str = Field(..., min_length=1)
    branch: str = Field(..., min_length=1)
    base: str = Field(..., min_length=1)
    title: str
    body: str
    assignee: str | None = None
    url: str | None = None


class PromotionRecord(BaseModel):
    """Outcome of one environment promotion attempt.

    Ephemeral: it is reported to the invoking pipeline and never persisted.

    Attributes:
        environment: Environment name.
        strategy: Strategy kind that handled the environment.
        outcome: What happened.
        changed: Whether the candidate differed from the recorded state.
        modified_paths: Paths that differed, relative to the environment path.
        commit_sha: Commit created, if any.
        branch: Branch the commit was pushed to, if any.
        correlation_token: Random token of a review-gated promotion.
        change_request: The change request opened, if any.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    environment: str
    strategy: str
    outcome: PromotionOutcome
    changed: bool
    modified_paths: list[str] = Field(default_factory=list)
    commit_sha: str | None = None
    branch: str | None = None
    correlation_token: str | None = None
    change_request: ChangeRequest | None = None

    @property
    def request_id(self) -> str | None:
        """Identifier of the created change request, if any."""
        return self.change_request.request_id if self.change_request else None


class PromotionRunResult(BaseModel):
    """Outcome of a promotion run (one source commit).

    Attributes:
        commit_sha: Source commit identifying the descriptor.
        records: One record per environment, in promotion order.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    commit_sha: str
    records: list[PromotionRecord] = Field(default_factory=list)

    @property
    def status(self) -> RunStatus:
        """PROMOTED when any environment changed, NO_OP otherwise."""
        if any(record.outcome != PromotionOutcome.NO_OP for record in self.records):
            return RunStatus.PROMOTED
        return RunStatus.NO_OP


__all__ = [
    "ChangeDetection",
    "ChangeRequest",
    "CommitMessage",
    "Credentials",
    "EnvironmentConfig",
    "PromoterConfig",
    "PromotionOutcome",
    "PromotionRecord",
    "PromotionRunResult",
    "PromotionStrategyKind",
    "RunStatus",
    "StepConfig",
]
