"""Review Gateway client for opening and assigning change requests.

The review gateway is the hosting service's pull request API. Two calls are
needed: create a change request (title, body, head branch, base branch) and
assign an identity to an existing request. Both authenticate with the same
identity/secret pair as the state store.

Calls are synchronous and never retried: creating a request is not
idempotent, so callers decide what to do after a failure.

Example:
    >>> gateway = GitHubReviewGateway(
    ...     api_url="https://api.github.com",
    ...     repository="acme/model-gitops",
    ...     credentials=Credentials(username="ci-bot", token="..."),
    ... )
    >>> request = gateway.create_change_request(
    ...     title="Promote model 3f2a9c1 to production",
    ...     body="...",
    ...     head="promote/production/4f1c",
    ...     base="master",
    ... )
    >>> gateway.assign(request.request_id, "release-manager")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import httpx
import structlog

from modelship.errors import InvalidReviewResponseError, ReviewGatewayError, TransportError
from modelship.schemas.promotion import ChangeRequest
from modelship.telemetry.sanitization import sanitize_error_message
from modelship.telemetry.tracing import create_span

if TYPE_CHECKING:
    from modelship.schemas.promotion import Credentials

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class ReviewGateway(Protocol):
    """Operations the review-gated strategy needs from a review gateway."""

    def create_change_request(
        self,
        *,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> ChangeRequest: ...

    def assign(self, request_id: str, assignee: str) -> None: ...


def extract_request_id(payload: Any) -> str:
    """Extract the change request identifier from a create response.

    Args:
        payload: Decoded JSON body of the create call.

    Returns:
        The identifier as a string.

    Raises:
        InvalidReviewResponseError: If the body is not an object or the
            ``number`` field is missing or not a positive integer.

    Examples:
        >>> extract_request_id({"number": 42, "html_url": "https://..."})
        '42'
    """
    if not isinstance(payload, dict):
        raise InvalidReviewResponseError(
            "create_request",
            f"expected a JSON object, got {type(payload).__name__}",
        )
    number = payload.get("number")
    if isinstance(number, bool):
        number = None
    if isinstance(number, str) and number.strip().isdigit():
        number = int(number.strip())
    if not isinstance(number, int) or number <= 0:
        raise InvalidReviewResponseError(
            "create_request",
            f"missing or invalid request number: {payload.get('number')!r}",
        )
    return str(number)


class GitHubReviewGateway:
    """Pull request client for the GitHub REST API.

    Attributes:
        repository: ``owner/name`` slug of the state store repository.
    """

    def __init__(
        self,
        api_url: str,
        repository: str,
        credentials: Credentials,
        *,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the gateway.

        Args:
            api_url: Base URL of the API (e.g., https://api.github.com).
            repository: ``owner/name`` slug.
            credentials: Identity/secret pair used for basic authentication.
            client: Preconfigured httpx client (tests inject a MockTransport).
            timeout: Per-request timeout in seconds.
        """
        self.repository = repository
        self._client = client or httpx.Client(
            base_url=api_url.rstrip("/"),
            auth=(credentials.username, credentials.token.get_secret_value()),
            headers={"Accept": "application/vnd.github+json"},
            timeout=timeout,
        )
        self._log = logger.bind(repository=repository)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> GitHubReviewGateway:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def create_change_request(
        self,
        *,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> ChangeRequest:
        """Open a pull request from ``head`` into ``base``.

        Raises:
            TransportError: If the API cannot be reached.
            ReviewGatewayError: If the API rejects the request.
            InvalidReviewResponseError: If the response carries no usable identifier.
        """
        with create_span(
            "modelship.review.create_request",
            attributes={"repository": self.repository, "head": head, "base": base},
        ):
            payload = self._post(
                "create_request",
                f"/repos/{self.repository}/pulls",
                {"title": title, "body": body, "head": head, "base": base},
            )
            request_id = extract_request_id(payload)
            url = payload.get("html_url")
            self._log.info("change_request_created", request_id=request_id, head=head)
            return ChangeRequest(
                request_id=request_id,
                branch=head,
                base=base,
                title=title,
                body=body,
                url=url if isinstance(url, str) else None,
            )

    def assign(self, request_id: str, assignee: str) -> None:
        """Assign ``assignee`` to the request ``request_id``.

        Raises:
            TransportError: If the API cannot be reached.
            ReviewGatewayError: If the API rejects the assignment.
        """
        with create_span(
            "modelship.review.assign",
            attributes={"repository": self.repository, "request_id": request_id},
        ):
            self._post(
                "assign",
                f"/repos/{self.repository}/issues/{request_id}/assignees",
                {"assignees": [assignee]},
            )
            self._log.info("change_request_assigned", request_id=request_id, assignee=assignee)

    def _post(self, operation: str, path: str, payload: dict[str, Any]) -> Any:
        try:
            response = self._client.post(path, json=payload)
        except httpx.HTTPError as e:
            raise TransportError(operation, sanitize_error_message(str(e) or type(e).__name__)) from e

        if response.is_error:
            raise ReviewGatewayError(
                operation,
                _error_detail(response),
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise InvalidReviewResponseError(operation, "body is not valid JSON") from e


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return sanitize_error_message(response.text or response.reason_phrase)
    if isinstance(body, dict) and body.get("message"):
        detail = str(body["message"])
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            detail += f" ({errors[0]})"
        return sanitize_error_message(detail)
    return sanitize_error_message(str(body))


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "GitHubReviewGateway",
    "ReviewGateway",
    "extract_request_id",
]
