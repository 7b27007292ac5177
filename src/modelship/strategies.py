"""Environment promotion strategies.

A strategy writes a candidate descriptor into one environment once the
Change Detector has reported a change:

    - DirectPromotionStrategy ("direct"): commit to the default branch and
      push. Used for staging-like environments.
    - ReviewGatedPromotionStrategy ("review-gated"): commit on a new uniquely
      named branch, push it, open a change request and assign the approver.
      The environment's live subtree on the default branch is never touched.

Strategies are looked up by the ``strategy`` kind each environment declares.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

import structlog

from modelship.errors import (
    BranchPushError,
    PromotionError,
    ReviewAssignmentError,
    ReviewRequestCreationError,
)
from modelship.schemas.promotion import (
    CommitMessage,
    PromotionOutcome,
    PromotionRecord,
    PromotionStrategyKind,
)
from modelship.telemetry.tracing import create_span
from modelship.tokens import generate_token, review_branch_name

if TYPE_CHECKING:
    from pathlib import Path

    from modelship.review_gateway import ReviewGateway
    from modelship.schemas.promotion import ChangeDetection, EnvironmentConfig
    from modelship.state_store import GitStateStore
    from modelship.tokens import TokenFactory

logger = structlog.get_logger(__name__)


class PromotionStrategy(ABC):
    """Base class for environment promotion strategies."""

    kind: ClassVar[str]

    def __init__(self, store: GitStateStore) -> None:
        self.store = store

    @abstractmethod
    def promote(
        self,
        environment: EnvironmentConfig,
        detection: ChangeDetection,
        descriptor: Path,
        message: CommitMessage,
        commit_sha: str,
    ) -> PromotionRecord:
        """Write ``descriptor`` into ``environment``.

        Args:
            environment: Target environment.
            detection: Change Detector result; ``changed`` must be True.
            descriptor: Candidate descriptor directory.
            message: Structured commit message.
            commit_sha: Source commit the descriptor was built from.

        Returns:
            PromotionRecord describing what was written.
        """

    def _write_candidate(
        self,
        branch: str,
        environment: EnvironmentConfig,
        detection: ChangeDetection,
        descriptor: Path,
        message: CommitMessage,
    ) -> str:
        """Materialize the descriptor on ``branch`` and commit the changed paths."""
        if not detection.changed:
            raise ValueError(f"nothing to promote for environment '{environment.name}'")
        self.store.checkout(branch, detection.baseline)
        self.store.materialize(descriptor, environment.path)
        paths = [f"{environment.path}/{path}" for path in detection.modified_paths]
        return self.store.commit(paths, message)


class DirectPromotionStrategy(PromotionStrategy):
    """Commit the descriptor straight to the default branch of the state store.

    After success the environment subtree is byte-identical to the
    descriptor. A rejected push surfaces as PushConflictError; the strategy
    never merges or rebases on the caller's behalf.
    """

    kind = PromotionStrategyKind.DIRECT.value

    def promote(
        self,
        environment: EnvironmentConfig,
        detection: ChangeDetection,
        descriptor: Path,
        message: CommitMessage,
        commit_sha: str,
    ) -> PromotionRecord:
        branch = self.store.default_branch
        with create_span(
            "modelship.promotion.direct",
            attributes={"environment": environment.name, "branch": branch},
        ) as span:
            new_commit = self._write_candidate(
                branch, environment, detection, descriptor, message
            )
            self.store.push(branch, baseline=detection.baseline)
            span.set_attribute("commit_sha", new_commit)

        logger.info(
            "environment_promoted",
            environment=environment.name,
            strategy=self.kind,
            commit_sha=new_commit,
            branch=branch,
        )
        return PromotionRecord(
            environment=environment.name,
            strategy=self.kind,
            outcome=PromotionOutcome.COMMITTED,
            changed=True,
            modified_paths=detection.modified_paths,
            commit_sha=new_commit,
            branch=branch,
        )


class ReviewGatedPromotionStrategy(PromotionStrategy):
    """Propose the descriptor through a change request.

    Each promotion gets a fresh correlation token from ``token_factory``. The
    token names the review branch and is quoted in the request body.

    Failure modes:
        - branch push fails: BranchPushError, nothing created on the gateway
        - request creation fails: ReviewRequestCreationError naming the branch
        - assignment fails: ReviewAssignmentError naming request and branch
    """

    kind = PromotionStrategyKind.REVIEW_GATED.value

    def __init__(
        self,
        store: GitStateStore,
        gateway: ReviewGateway,
        *,
        branch_prefix: str = "promote",
        token_factory: TokenFactory = generate_token,
    ) -> None:
        super().__init__(store)
        self.gateway = gateway
        self.branch_prefix = branch_prefix
        self.token_factory = token_factory

    def promote(
        self,
        environment: EnvironmentConfig,
        detection: ChangeDetection,
        descriptor: Path,
        message: CommitMessage,
        commit_sha: str,
    ) -> PromotionRecord:
        token = self.token_factory()
        branch = review_branch_name(self.branch_prefix, environment.name, token)
        base = self.store.default_branch
        log = logger.bind(environment=environment.name, branch=branch, correlation_token=token)

        with create_span(
            "modelship.promotion.review_gated",
            attributes={"environment": environment.name, "branch": branch},
        ) as span:
            new_commit = self._write_candidate(
                branch, environment, detection, descriptor, message
            )
            try:
                self.store.push(branch, baseline=detection.baseline)
            except PromotionError as e:
                log.error("review_branch_push_failed", error=str(e))
                raise BranchPushError(branch, str(e)) from e

            title = f"Promote model {commit_sha[:12]} to {environment.name}"
            body = render_request_body(environment, detection, message, commit_sha, token)
            try:
                request = self.gateway.create_change_request(
                    title=title,
                    body=body,
                    head=branch,
                    base=base,
                )
            except PromotionError as e:
                log.error("change_request_creation_failed", error=str(e))
                raise ReviewRequestCreationError(environment.name, branch, str(e)) from e
            span.set_attribute("request_id", request.request_id)

            if environment.approver:
                try:
                    self.gateway.assign(request.request_id, environment.approver)
                except PromotionError as e:
                    log.error(
                        "change_request_assignment_failed",
                        request_id=request.request_id,
                        error=str(e),
                    )
                    raise ReviewAssignmentError(
                        environment.name,
                        branch,
                        request.request_id,
                        environment.approver,
                        str(e),
                    ) from e
                request = request.model_copy(update={"assignee": environment.approver})
            else:
                log.warning("change_request_unassigned", reason="no_approver_configured")

        log.info(
            "review_requested",
            strategy=self.kind,
            request_id=request.request_id,
            commit_sha=new_commit,
            assignee=request.assignee,
        )
        return PromotionRecord(
            environment=environment.name,
            strategy=self.kind,
            outcome=PromotionOutcome.REVIEW_REQUESTED,
            changed=True,
            modified_paths=detection.modified_paths,
            commit_sha=new_commit,
            branch=branch,
            correlation_token=token,
            change_request=request,
        )


def render_request_body(
    environment: EnvironmentConfig,
    detection: ChangeDetection,
    message: CommitMessage,
    commit_sha: str,
    token: str,
) -> str:
    """Render the change request body.

    The body states the purpose of the request and carries the correlation
    token for auditability.
    """
    lines = [
        f"Automated model promotion to `{environment.name}`.",
        "",
        f"- Source commit: `{commit_sha}`",
        f"- Action: {message.action}",
        f"- Environment path: `{environment.path}`",
        f"- Baseline: `{detection.baseline}`",
        f"- Correlation token: `{token}`",
    ]
    if message.message:
        lines.append(f"- Message: {message.message}")
    if message.author:
        author = f"{message.author} <{message.email}>" if message.email else message.author
        lines.append(f"- Author: {author}")
    lines.extend(["", "Changed files:"])
    lines.extend(f"- `{path}`" for path in detection.modified_paths)
    lines.extend(["", "Merging this request updates the live environment."])
    return "\n".join(lines)


__all__ = [
    "DirectPromotionStrategy",
    "PromotionStrategy",
    "ReviewGatedPromotionStrategy",
    "render_request_body",
]
