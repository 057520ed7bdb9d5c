"""Pydantic v2 models for the incremental episode scrape.

Records and outcomes are frozen (immutable); the batch scraper builds a new
:class:`BatchResult` at the end of each run instead of mutating one.

Architecture note:
    The cursor is a single integer in the store, so it has no model here.
    A run moves through :class:`RunPhase` in memory
    (PLANNING -> RUNNING -> COMPLETED | ABORTED) while its persisted
    :class:`RunStatus` goes ``started`` -> ``success`` | ``failed``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.utils.errors import RunAbortedError


class OutcomeStatus(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Classification of one item-processing attempt."""

    OK = "ok"                    # title found, item row written (or already present)
    NOT_FOUND = "not_found"      # page or title missing, nothing written
    PARSE_ERROR = "parse_error"  # page fetched but its payload is malformed
    ERROR = "error"              # retries exhausted or unexpected failure


class RunStatus(str, Enum):  # noqa: UP042
    """Persisted status of a run-log entry."""

    STARTED = "started"
    SUCCESS = "success"
    FAILED = "failed"


class RunPhase(str, Enum):  # noqa: UP042
    """In-memory phases of a batch run."""

    PLANNING = "PLANNING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    ABORTED = "ABORTED"


class AdvancementPolicy(str, Enum):  # noqa: UP042
    """Rule for computing the new cursor value when a run completes.

    ``advance_attempted`` moves the cursor past the whole attempted range,
    even when every item failed.  ``advance_on_success`` stops at the last
    id of the unbroken run of ``ok`` outcomes from the start of the batch,
    so a failing id is retried by the next run.
    """

    ADVANCE_ATTEMPTED = "advance_attempted"
    ADVANCE_ON_SUCCESS = "advance_on_success"


class ExtractedRecord(BaseModel):
    """Fields pulled out of one episode page."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=1, description="Numeric id taken from the page URL.")
    name: str | None = Field(default=None, description="Cleaned page title.")
    poster_url: str | None = Field(default=None, description="Film poster image URL.")
    sync_data: dict[str, Any] | None = Field(
        default=None,
        description="Embedded syncData JSON with series_url/selector_position removed.",
    )


class ItemOutcome(BaseModel):
    """Result of processing a single id within a run."""

    model_config = ConfigDict(frozen=True)

    item_id: int
    status: OutcomeStatus
    message: str = ""
    attempts: int = Field(default=1, ge=0)
    record: ExtractedRecord | None = None
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )


class RunRecord(BaseModel):
    """A row of the run log, as read back from the store."""

    model_config = ConfigDict(frozen=True)

    run_id: int
    start_id: int
    end_id: int
    batch_size: int
    status: RunStatus
    message: str | None = None
    started_at: str
    finished_at: str | None = None


class BatchConfig(BaseModel):
    """Parameters of one ``run_batch`` invocation.

    Delays are in milliseconds.  With ``delay_jitter_ms > 0`` the pause
    between items is drawn uniformly from
    ``[delay_ms - delay_jitter_ms, delay_ms + delay_jitter_ms]`` (floored
    at zero), so the defaults give the 2-4 second spacing the site
    tolerates.
    """

    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(default=10, gt=0)
    delay_ms: int = Field(default=3000, ge=0)
    delay_jitter_ms: int = Field(default=1000, ge=0)
    override_start_id: int = Field(default=0, ge=0)
    advancement_policy: AdvancementPolicy = AdvancementPolicy.ADVANCE_ATTEMPTED
    retry_count: int = Field(default=2, ge=0)
    retry_delay_ms: int = Field(default=3000, ge=0)
    run_timeout_seconds: float | None = Field(default=None, gt=0)


class BatchResult(BaseModel):
    """Structured summary returned by every batch run."""

    model_config = ConfigDict(frozen=True)

    status: str = Field(description="'ok' when the run completed, 'error' when it aborted.")
    phase: RunPhase
    run_id: int | None = None
    start_id: int | None = None
    end_id: int | None = None
    cursor_before: int | None = None
    cursor_after: int | None = None
    max_success_id: int | None = None
    outcomes: list[ItemOutcome] = Field(default_factory=list)
    error: str | None = None

    @property
    def succeeded_ids(self) -> list[int]:
        return [o.item_id for o in self.outcomes if o.status == OutcomeStatus.OK]

    @property
    def failed_ids(self) -> list[int]:
        return [o.item_id for o in self.outcomes if o.status != OutcomeStatus.OK]

    def count_by_status(self) -> dict[str, int]:
        """Return ``{status: count}`` for every outcome status."""
        counts = {s.value: 0 for s in OutcomeStatus}
        for outcome in self.outcomes:
            counts[outcome.status.value] += 1
        return counts

    def raise_for_status(self) -> BatchResult:
        """Raise :class:`RunAbortedError` if the run did not complete.

        Returns ``self`` so callers can chain
        ``result = (await scraper.run(cfg)).raise_for_status()``.
        """
        if self.status != "ok":
            raise RunAbortedError(self.error or "Batch run aborted")
        return self
