"""animeHarvest domain models - re-exports all public model classes.

Other modules may import from ``src.models`` directly instead of
``src.models.scrape``.
"""

from __future__ import annotations

from src.models.scrape import (
    AdvancementPolicy,
    BatchConfig,
    BatchResult,
    ExtractedRecord,
    ItemOutcome,
    OutcomeStatus,
    RunPhase,
    RunRecord,
    RunStatus,
)

__all__ = [
    "AdvancementPolicy",
    "BatchConfig",
    "BatchResult",
    "ExtractedRecord",
    "ItemOutcome",
    "OutcomeStatus",
    "RunPhase",
    "RunRecord",
    "RunStatus",
]
