"""modelship: continuous delivery of ML model deployments through a GitOps repository.

This package provides:
- PromotionOrchestrator: Promote a built descriptor through every environment
- ChangeDetector: Content-based change detection against the state store
- DirectPromotionStrategy / ReviewGatedPromotionStrategy: Environment strategies
- GitStateStore: GitPython-backed environment state store
- GitHubReviewGateway: Change request client over httpx
- load_config / PromoterConfig: Configuration from YAML and the environment
- Errors: PromotionError hierarchy with CLI exit codes (modelship.errors)

Example:
    >>> from modelship import PromotionOrchestrator, load_config
    >>> orchestrator = PromotionOrchestrator(load_config(Path("modelship.yaml")))
    >>> result = orchestrator.promote(Path("build/descriptor"), "3f2a9c1")
    >>> [record.outcome for record in result.records]
    [<PromotionOutcome.COMMITTED: 'committed'>, <PromotionOutcome.REVIEW_REQUESTED: 'review_requested'>]

See Also:
    - modelship.cli: Click command line interface
    - modelship.telemetry: Tracing and structured logging
"""

from __future__ import annotations

__version__ = "0.1.0"

from modelship.change_detector import ChangeDetector
from modelship.config import load_config
from modelship.errors import PromotionError
from modelship.orchestrator import PromotionOrchestrator
from modelship.review_gateway import GitHubReviewGateway, ReviewGateway
from modelship.schemas.promotion import (
    ChangeDetection,
    ChangeRequest,
    CommitMessage,
    Credentials,
    EnvironmentConfig,
    PromoterConfig,
    PromotionOutcome,
    PromotionRecord,
    PromotionRunResult,
    RunStatus,
)
from modelship.state_store import GitStateStore
from modelship.strategies import (
    DirectPromotionStrategy,
    PromotionStrategy,
    ReviewGatedPromotionStrategy,
)

__all__ = [
    "ChangeDetection",
    "ChangeDetector",
    "ChangeRequest",
    "CommitMessage",
    "Credentials",
    "DirectPromotionStrategy",
    "EnvironmentConfig",
    "GitHubReviewGateway",
    "GitStateStore",
    "PromoterConfig",
    "PromotionError",
    "PromotionOrchestrator",
    "PromotionOutcome",
    "PromotionRecord",
    "PromotionRunResult",
    "PromotionStrategy",
    "ReviewGateway",
    "ReviewGatedPromotionStrategy",
    "RunStatus",
    "__version__",
    "load_config",
]
