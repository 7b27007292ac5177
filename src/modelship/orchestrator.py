"""Promotion Orchestrator.

Drives one promotion run per source commit: sync the state store, then for
every configured environment in order (staging before production) detect
changes and apply the environment's strategy.

    - A no-op environment is skipped; the remaining environments still run.
    - A fatal failure stops the run; later environments are not attempted.
    - Configuration problems (unknown strategy, missing credentials) are
      raised from the constructor, before any network call or mutation.

Example:
    >>> from modelship.orchestrator import PromotionOrchestrator
    >>> from modelship.config import load_config
    >>>
    >>> orchestrator = PromotionOrchestrator(load_config(Path("modelship.yaml")))
    >>> result = orchestrator.promote(Path("build/descriptor"), commit_sha="3f2a9c1")
    >>> result.status
    <RunStatus.PROMOTED: 'promoted'>
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from modelship.change_detector import ChangeDetector, descriptor_digests
from modelship.errors import (
    ConfigurationError,
    MissingCredentialsError,
    PromotionError,
    UnknownStrategyError,
)
from modelship.review_gateway import GitHubReviewGateway
from modelship.schemas.promotion import (
    CommitMessage,
    PromotionOutcome,
    PromotionRecord,
    PromotionRunResult,
    PromotionStrategyKind,
)
from modelship.state_store import GitStateStore
from modelship.strategies import DirectPromotionStrategy, ReviewGatedPromotionStrategy
from modelship.telemetry.tracing import create_span
from modelship.tokens import generate_token

if TYPE_CHECKING:
    from modelship.review_gateway import ReviewGateway
    from modelship.schemas.promotion import ChangeDetection, EnvironmentConfig, PromoterConfig
    from modelship.strategies import PromotionStrategy
    from modelship.tokens import TokenFactory

logger = structlog.get_logger(__name__)


class PromotionOrchestrator:
    """Promotes a built descriptor through the configured environments.

    Attributes:
        config: Promoter configuration.
        store: Environment State Store.
        detector: Change Detector bound to the store.
        strategies: Strategy instances keyed by kind.

    Example:
        >>> orchestrator = PromotionOrchestrator(
        ...     config,
        ...     review_gateway=fake_gateway,
        ...     token_factory=lambda: "token-1",
        ... )
    """

    def __init__(
        self,
        config: PromoterConfig,
        *,
        store: GitStateStore | None = None,
        review_gateway: ReviewGateway | None = None,
        token_factory: TokenFactory = generate_token,
        strategies: dict[str, PromotionStrategy] | None = None,
    ) -> None:
        """Initialize the orchestrator and validate the configuration.

        Args:
            config: Promoter configuration.
            store: State store; built from the configuration when omitted. Without a
                configured ``workdir`` the checkout goes to a temporary
                directory removed by close().
            review_gateway: Review gateway; a GitHubReviewGateway is built
                from the configuration when a review-gated environment needs one.
            token_factory: Correlation token generator for review branches.
            strategies: Additional or replacement strategies keyed by kind.

        Raises:
            ConfigurationError: If no environment is configured, or a review
                gateway cannot be built.
            MissingCredentialsError: If the configuration carries no credentials.
            UnknownStrategyError: If an environment declares an unknown kind.
        """
        if not config.environments:
            raise ConfigurationError(
                "no environments configured; set staging_path and/or production_path"
            )
        if config.credentials is None:
            raise MissingCredentialsError()

        self.config = config
        extra = dict(strategies or {})
        needs_gateway = any(
            env.strategy == PromotionStrategyKind.REVIEW_GATED.value
            and env.strategy not in extra
            for env in config.environments
        )
        known = {PromotionStrategyKind.DIRECT.value, PromotionStrategyKind.REVIEW_GATED.value}
        self._validate_strategies(known | set(extra))

        self._scratch: tempfile.TemporaryDirectory[str] | None = None
        if store is None:
            if config.workdir:
                workdir = Path(config.workdir)
            else:
                self._scratch = tempfile.TemporaryDirectory(prefix="modelship-")
                workdir = Path(self._scratch.name) / "state"
            store = GitStateStore.from_config(config, workdir)
        self.store = store
        self.detector = ChangeDetector(self.store)

        self.strategies: dict[str, PromotionStrategy] = {
            PromotionStrategyKind.DIRECT.value: DirectPromotionStrategy(self.store),
        }
        if needs_gateway:
            gateway = review_gateway or self._build_review_gateway()
            self.strategies[PromotionStrategyKind.REVIEW_GATED.value] = (
                ReviewGatedPromotionStrategy(
                    self.store,
                    gateway,
                    branch_prefix=config.branch_prefix,
                    token_factory=token_factory,
                )
            )
        self.strategies.update(extra)

        self._log = logger.bind(
            environments=[env.name for env in config.environments],
            strategies=sorted(self.strategies),
        )

    def close(self) -> None:
        """Remove the temporary checkout created for this orchestrator, if any."""
        if self._scratch is not None:
            self._scratch.cleanup()
            self._scratch = None

    def __enter__(self) -> PromotionOrchestrator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _validate_strategies(self, known: set[str]) -> None:
        for env in self.config.environments:
            if env.strategy not in known:
                raise UnknownStrategyError(env.name, env.strategy, sorted(known))

    def _build_review_gateway(self) -> ReviewGateway:
        credentials = self.config.credentials
        if credentials is None:
            raise MissingCredentialsError()
        if not self.config.repository:
            raise ConfigurationError(
                "cannot derive 'owner/name' from state_store_url; set 'repository'"
            )
        return GitHubReviewGateway(
            api_url=self.config.review_api_url,
            repository=self.config.repository,
            credentials=credentials,
        )

    def detect(self, descriptor: Path) -> list[ChangeDetection]:
        """Report change detection for every environment without writing.

        Args:
            descriptor: Candidate descriptor directory.

        Returns:
            One ChangeDetection per environment, in promotion order.
        """
        descriptor_digests(descriptor)
        baseline = self.store.sync()
        return [
            self.detector.detect(descriptor, env, baseline)
            for env in self.config.environments
        ]

    def promote(
        self,
        descriptor: Path,
        commit_sha: str,
        *,
        message: str = "",
        author: str = "",
        email: str = "",
    ) -> PromotionRunResult:
        """Promote ``descriptor`` through every configured environment.

        Args:
            descriptor: Built deployment descriptor directory.
            commit_sha: Source commit the descriptor was built from.
            message: Free-text commit message field.
            author: Actor name recorded in the commit message.
            email: Actor email recorded in the commit message.

        Returns:
            PromotionRunResult with one record per environment.

        Raises:
            DescriptorNotFoundError: If the descriptor is missing or empty.
            PromotionError: Any fatal failure; remaining environments are skipped.
        """
        descriptor_digests(descriptor)
        records: list[PromotionRecord] = []

        with create_span(
            "modelship.promotion.run",
            attributes={"commit_sha": commit_sha, "descriptor": str(descriptor)},
        ) as span:
            self._log.info("promotion_run_started", commit_sha=commit_sha)
            self.store.sync()

            for env in self.config.environments:
                commit_message = CommitMessage(
                    action=f"Promote model {commit_sha[:12]} to {env.name}",
                    message=message,
                    author=author,
                    email=email,
                )
                try:
                    record = self._promote_environment(env, descriptor, commit_message, commit_sha)
                except PromotionError as e:
                    e.completed = tuple(records)
                    self._log.error(
                        "promotion_run_failed",
                        commit_sha=commit_sha,
                        environment=env.name,
                        error_type=type(e).__name__,
                        error=str(e),
                        retryable=e.retryable,
                        completed={
                            record.environment: record.commit_sha or record.outcome.value
                            for record in records
                        },
                        skipped=[
                            other.name
                            for other in self.config.environments[
                                self.config.environments.index(env) + 1 :
                            ]
                        ],
                    )
                    raise
                records.append(record)

            result = PromotionRunResult(commit_sha=commit_sha, records=records)
            span.set_attribute("status", result.status.value)

        self._log.info(
            "promotion_run_completed",
            commit_sha=commit_sha,
            status=result.status.value,
            outcomes={record.environment: record.outcome.value for record in records},
        )
        return result

    def _promote_environment(
        self,
        env: EnvironmentConfig,
        descriptor: Path,
        message: CommitMessage,
        commit_sha: str,
    ) -> PromotionRecord:
        baseline = self.store.baseline()
        detection = self.detector.detect(descriptor, env, baseline)
        if not detection.changed:
            self._log.info("environment_unchanged", environment=env.name, baseline=baseline)
            return PromotionRecord(
                environment=env.name,
                strategy=env.strategy,
                outcome=PromotionOutcome.NO_OP,
                changed=False,
            )
        strategy = self.strategies[env.strategy]
        return strategy.promote(env, detection, descriptor, message, commit_sha)


__all__ = ["PromotionOrchestrator"]
