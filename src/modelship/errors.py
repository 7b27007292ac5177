"""Promotion engine exception hierarchy for modelship.

This module defines all custom exceptions raised while promoting deployment
descriptors through the GitOps state store. All exceptions inherit from
PromotionError, the base exception class.

Exception Hierarchy:
    PromotionError (base)
    ├── ConfigurationError              # Invalid or incomplete configuration
    │   ├── UnknownStrategyError        # Environment declares an unknown kind
    │   └── MissingCredentialsError     # No identity/secret pair supplied
    ├── DescriptorNotFoundError         # Built descriptor directory missing
    │   └── EmptyDescriptorError        # Descriptor directory holds no files
    ├── StateStoreError                 # Local checkout, staging or commit failed
    ├── PushConflictError               # Remote advanced past the baseline
    ├── TransportError                  # Clone/fetch/push/API network failure
    │   └── BranchPushError             # Review branch could not be pushed
    ├── PartialPromotionError           # Non-idempotent sequence half applied
    │   ├── ReviewRequestCreationError  # Branch pushed, request not created
    │   └── ReviewAssignmentError       # Request created, assignment failed
    ├── ReviewGatewayError              # Review API rejected a call
    │   └── InvalidReviewResponseError  # Unexpected response shape
    └── StepFailedError                 # External pipeline step failed

Exit Codes:
    0 - Promoted
    1 - General error (PromotionError)
    2 - Configuration error
    3 - No changes (not an error, see modelship.cli.utils.ExitCode)
    4 - Push conflict (re-fetch and retry the whole promotion)
    5 - Transport error (retryable)
    6 - Partial promotion (manual remediation required)
    7 - Review gateway error
    8 - External step failed
    9 - Deployment descriptor missing or empty
    10 - State store checkout could not be updated

Example:
    >>> from modelship.errors import PushConflictError
    >>> raise PushConflictError("master", "3f2a9c1")
    Traceback (most recent call last):
        ...
    PushConflictError: Push to 'master' rejected: remote advanced past baseline 3f2a9c1...
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modelship.schemas.promotion import PromotionRecord


class PromotionError(Exception):
    """Base exception for all promotion engine errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).
        retryable: Whether the surrounding pipeline may safely re-run the
            whole promotion.
        completed: Records of environments promoted earlier in the same run,
            attached by the orchestrator when a later environment fails.
    """

    exit_code: int = 1
    retryable: bool = False
    completed: tuple[PromotionRecord, ...] = ()


class ConfigurationError(PromotionError):
    """Raised when the promoter configuration is invalid.

    Configuration errors are always detected before any network call or
    mutation of the state store.
    """

    exit_code: int = 2

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid configuration: {reason}")


class UnknownStrategyError(ConfigurationError):
    """Raised when an environment declares a promotion strategy nobody registered.

    Attributes:
        environment: Name of the offending environment.
        strategy: The unknown strategy kind.
        known: Strategy kinds that are available.
    """

    def __init__(self, environment: str, strategy: str, known: list[str]) -> None:
        self.environment = environment
        self.strategy = strategy
        self.known = known
        super().__init__(
            f"environment '{environment}' declares unknown strategy '{strategy}' "
            f"(known strategies: {', '.join(sorted(known))})"
        )


class MissingCredentialsError(ConfigurationError):
    """Raised when no credential pair is available for the state store."""

    def __init__(self, detail: str = "") -> None:
        reason = "state store credentials are missing"
        if detail:
            reason = f"{reason}: {detail}"
        reason += (
            ". Set MODELSHIP_GIT_USERNAME and MODELSHIP_GIT_TOKEN or add a "
            "'credentials' block to the configuration file"
        )
        super().__init__(reason)


class DescriptorNotFoundError(PromotionError):
    """Raised when the built deployment descriptor location does not exist.

    Attributes:
        path: The location handed to the promotion engine.
    """

    exit_code: int = 9

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Deployment descriptor not found or not a directory: {path}")


class EmptyDescriptorError(DescriptorNotFoundError):
    """Raised when the deployment descriptor directory contains no files."""

    def __init__(self, path: str) -> None:
        self.path = path
        PromotionError.__init__(self, f"Deployment descriptor contains no files: {path}")


class StateStoreError(PromotionError):
    """Raised when the local checkout of the state store cannot be updated.

    Covers branch checkout, staging and committing. Nothing was pushed when
    this is raised.

    Attributes:
        operation: Git operation that failed (checkout, add, commit).
        reason: Git output, with credentials redacted.
    """

    exit_code: int = 10

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"State store {operation} failed: {reason}")


class PushConflictError(PromotionError):
    """Raised when a direct push is rejected because the remote line advanced.

    The engine never merges on behalf of the caller. Re-fetch and re-run the
    whole promotion.

    Attributes:
        branch: Remote branch the push targeted.
        baseline: Revision the promotion was computed against.
        exit_code: CLI exit code (4).
    """

    exit_code: int = 4
    retryable: bool = True

    def __init__(self, branch: str, baseline: str, detail: str | None = None) -> None:
        self.branch = branch
        self.baseline = baseline
        self.detail = detail
        msg = (
            f"Push to '{branch}' rejected: remote advanced past baseline "
            f"{baseline[:7]}... Re-run the promotion to re-fetch and retry"
        )
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class TransportError(PromotionError):
    """Raised when the state store or review gateway cannot be reached.

    Attributes:
        operation: The operation that failed (clone, fetch, push, create_request...).
        reason: Description of the failure, with credentials redacted.
        exit_code: CLI exit code (5).
    """

    exit_code: int = 5
    retryable: bool = True

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


class BranchPushError(TransportError):
    """Raised when a review branch cannot be pushed.

    Nothing was created on the review gateway when this is raised.
    """

    def __init__(self, branch: str, reason: str) -> None:
        self.branch = branch
        super().__init__(f"push of review branch '{branch}'", reason)


class PartialPromotionError(PromotionError):
    """Base for partial-success inconsistencies in review-gated promotion.

    The sequence branch push -> request creation -> assignment is not
    idempotent end-to-end, so these are never retried automatically.

    Attributes:
        environment: Environment being promoted.
        branch: Name of the pushed branch.
        request_id: Change request identifier, when one was created.
        exit_code: CLI exit code (6).
    """

    exit_code: int = 6

    def __init__(
        self,
        message: str,
        *,
        environment: str,
        branch: str,
        request_id: str | None = None,
    ) -> None:
        self.environment = environment
        self.branch = branch
        self.request_id = request_id
        super().__init__(message)


class ReviewRequestCreationError(PartialPromotionError):
    """Raised when the branch was pushed but the change request was not created."""

    def __init__(self, environment: str, branch: str, reason: str) -> None:
        self.reason = reason
        super().__init__(
            f"Branch '{branch}' was pushed for environment '{environment}' but the "
            f"change request could not be created: {reason}. "
            f"Remediation: open a request for '{branch}' manually or delete the branch",
            environment=environment,
            branch=branch,
        )


class ReviewAssignmentError(PartialPromotionError):
    """Raised when the change request exists but the approver was not assigned."""

    def __init__(
        self,
        environment: str,
        branch: str,
        request_id: str,
        assignee: str,
        reason: str,
    ) -> None:
        self.assignee = assignee
        self.reason = reason
        super().__init__(
            f"Change request {request_id} (branch '{branch}') for environment "
            f"'{environment}' is unassigned: assigning '{assignee}' failed: {reason}. "
            f"Remediation: assign the request manually",
            environment=environment,
            branch=branch,
            request_id=request_id,
        )


class ReviewGatewayError(PromotionError):
    """Raised when the review gateway rejects a call.

    Attributes:
        operation: Gateway operation (create_request, assign).
        status_code: HTTP status code, when a response was received.
        exit_code: CLI exit code (7).
    """

    exit_code: int = 7

    def __init__(
        self,
        operation: str,
        reason: str,
        status_code: int | None = None,
    ) -> None:
        self.operation = operation
        self.reason = reason
        self.status_code = status_code
        msg = f"Review gateway {operation} failed"
        if status_code is not None:
            msg += f" (HTTP {status_code})"
        super().__init__(f"{msg}: {reason}")


class InvalidReviewResponseError(ReviewGatewayError):
    """Raised when the review gateway answers with an unusable payload."""

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(operation, f"unexpected response: {reason}")


class StepFailedError(PromotionError):
    """Raised when an external pipeline step exits unsuccessfully.

    Attributes:
        step: Step name.
        returncode: Process exit code, None when the step timed out.
        exit_code: CLI exit code (8).
    """

    exit_code: int = 8

    def __init__(self, step: str, reason: str, returncode: int | None = None) -> None:
        self.step = step
        self.reason = reason
        self.returncode = returncode
        super().__init__(f"Step '{step}' failed: {reason}")


__all__ = [
    "BranchPushError",
    "ConfigurationError",
    "DescriptorNotFoundError",
    "EmptyDescriptorError",
    "InvalidReviewResponseError",
    "MissingCredentialsError",
    "PartialPromotionError",
    "PromotionError",
    "PushConflictError",
    "ReviewAssignmentError",
    "ReviewGatewayError",
    "ReviewRequestCreationError",
    "StateStoreError",
    "StepFailedError",
    "TransportError",
    "UnknownStrategyError",
]
