"""Pydantic schemas for modelship.

See Also:
    - modelship.schemas.promotion: Configuration, commit message and result models
"""

from __future__ import annotations

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
    PromotionStrategyKind,
    RunStatus,
    StepConfig,
)

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
