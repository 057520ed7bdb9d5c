"""Incremental batch scrape of numbered episode pages.

Each call to :meth:`BatchScraper.run` is one run:

    PLANNING   read the cursor, pick ``[start_id, end_id]``, open a run-log entry
    RUNNING    for every id in order: fetch (with retries) -> extract ->
               save -> log the outcome -> pause
    COMPLETED  write the new cursor and close the run log as ``success``
               in one store transaction
    ABORTED    a failure outside the per-item boundary (store, timeout,
               cancellation): run log ``failed``, cursor untouched

No single item can abort a run; every per-item failure becomes an outcome.

Usage via CLI::

    python -m src.cli.scrape run --batch-size 10
    python -m src.cli.scrape run --policy advance_on_success --start-id 500
"""

from __future__ import annotations

import asyncio
import inspect
import random
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

import structlog

from src.interfaces.page_extractor import IPageExtractor
from src.interfaces.page_fetcher import IPageFetcher
from src.interfaces.scrape_store import IScrapeStore
from src.models.scrape import (
    AdvancementPolicy,
    BatchConfig,
    BatchResult,
    ItemOutcome,
    OutcomeStatus,
    RunPhase,
    RunStatus,
)
from src.utils.errors import (
    ConfigurationError,
    NotFoundError,
    ParseError,
    PersistenceError,
    TransientFetchError,
)
from src.utils.logging import bind_run_context

logger = structlog.get_logger(logger_name=__name__)

ProgressCallback = Callable[[ItemOutcome], object]
SleepFunc = Callable[[float], Awaitable[None]]


# ---------------------------------------------------------------------------
# Pure planning helpers
# ---------------------------------------------------------------------------


def validate_batch_config(config: BatchConfig) -> None:
    """Reject parameters that make a run meaningless.

    ``BatchConfig`` already validates on construction; this also covers
    instances built with ``model_construct`` or ``model_copy(update=...)``,
    which skip validation.
    """
    if not isinstance(config.batch_size, int) or config.batch_size <= 0:
        raise ConfigurationError(f"batch_size must be a positive integer, got {config.batch_size!r}")
    for name in ("delay_ms", "delay_jitter_ms", "override_start_id", "retry_count", "retry_delay_ms"):
        value = getattr(config, name)
        if not isinstance(value, int) or value < 0:
            raise ConfigurationError(f"{name} must be a non-negative integer, got {value!r}")
    if config.run_timeout_seconds is not None and config.run_timeout_seconds <= 0:
        raise ConfigurationError(
            f"run_timeout_seconds must be positive, got {config.run_timeout_seconds!r}"
        )
    try:
        AdvancementPolicy(config.advancement_policy)
    except ValueError as exc:
        raise ConfigurationError(
            f"Unknown advancement policy {config.advancement_policy!r}"
        ) from exc


def plan_batch_range(last_id: int, config: BatchConfig) -> tuple[int, int]:
    """Return the inclusive ``(start_id, end_id)`` for the next run.

    ``override_start_id`` is a floor, not a jump target: it never moves the
    start below ``last_id + 1``.  A floor above ``last_id + 1`` leaves a gap
    that no later run will fill.
    """
    floor = config.override_start_id or 1
    start_id = max(last_id + 1, floor)
    return start_id, start_id + config.batch_size - 1


def compute_new_cursor(
    policy: AdvancementPolicy,
    cursor_before: int,
    start_id: int,
    end_id: int,
    outcomes: Sequence[ItemOutcome],
) -> int:
    """Return the cursor value to persist after a completed run.

    ``advance_attempted`` always returns *end_id*.  ``advance_on_success``
    returns the last id of the unbroken streak of ``ok`` outcomes starting
    at *start_id*, or *cursor_before* when *start_id* itself was not ``ok``.
    Outcome order does not matter.
    """
    if AdvancementPolicy(policy) == AdvancementPolicy.ADVANCE_ATTEMPTED:
        return end_id

    ok_ids = {o.item_id for o in outcomes if o.status == OutcomeStatus.OK}
    new_cursor = cursor_before
    next_id = start_id
    while next_id <= end_id and next_id in ok_ids:
        new_cursor = next_id
        next_id += 1
    return new_cursor


# ---------------------------------------------------------------------------
# Run state
# ---------------------------------------------------------------------------


@dataclass
class _RunState:
    """Mutable bookkeeping for one run; frozen into a BatchResult at the end."""

    phase: RunPhase = RunPhase.PLANNING
    run_id: int | None = None
    start_id: int | None = None
    end_id: int | None = None
    cursor_before: int | None = None
    cursor_after: int | None = None
    max_success_id: int | None = None
    outcomes: list[ItemOutcome] = field(default_factory=list)

    def add(self, outcome: ItemOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status == OutcomeStatus.OK and (
            self.max_success_id is None or outcome.item_id > self.max_success_id
        ):
            self.max_success_id = outcome.item_id

    def to_result(self, status: str, error: str | None = None) -> BatchResult:
        return BatchResult(
            status=status,
            phase=self.phase,
            run_id=self.run_id,
            start_id=self.start_id,
            end_id=self.end_id,
            cursor_before=self.cursor_before,
            cursor_after=self.cursor_after,
            max_success_id=self.max_success_id,
            outcomes=list(self.outcomes),
            error=error,
        )


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class BatchScraper:
    """Runs one batch of sequential page scrapes against a durable cursor.

    Parameters
    ----------
    store:
        Cursor, item, outcome-log and run-log persistence.  Opened at the
        start of every run and closed when it ends, unless the caller had
        already opened it.
    fetcher:
        Retrieves raw page HTML by id.
    extractor:
        Turns page HTML into an :class:`ExtractedRecord`.
    sleep:
        Awaitable used for the retry and pacing delays (default
        :func:`asyncio.sleep`); tests inject a mock.
    rng:
        Random source for the pacing jitter.
    """

    def __init__(
        self,
        store: IScrapeStore,
        fetcher: IPageFetcher,
        extractor: IPageExtractor,
        sleep: SleepFunc = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._extractor = extractor
        self._sleep = sleep
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        config: BatchConfig,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """Execute one run and return its summary.

        Raises
        ------
        ConfigurationError
            Before anything is read or written, when *config* is invalid.
        asyncio.CancelledError
            Re-raised after the run log has been closed as ``failed``.

        Every other failure is reported through the returned
        :class:`BatchResult` (``status == "error"``).
        """
        validate_batch_config(config)

        # A store the caller already opened stays open after the run.
        owns_connection = not self._store.is_open
        if owns_connection:
            try:
                await self._store.open()
            except PersistenceError as exc:
                logger.error("batch_run_store_unavailable", error=str(exc))
                return _RunState(phase=RunPhase.ABORTED).to_result("error", error=str(exc))

        try:
            return await self._execute(config, on_progress)
        finally:
            if owns_connection:
                await self._store.close()

    # ------------------------------------------------------------------
    # Run phases
    # ------------------------------------------------------------------

    async def _execute(
        self,
        config: BatchConfig,
        on_progress: ProgressCallback | None,
    ) -> BatchResult:
        state = _RunState()
        try:
            state.cursor_before = await self._store.get_cursor()
            state.start_id, state.end_id = plan_batch_range(state.cursor_before, config)
            state.run_id = await self._store.create_run(
                state.start_id, state.end_id, config.batch_size
            )
        except asyncio.CancelledError:
            await self._abort(state, "Run cancelled during planning")
            raise
        except Exception as exc:
            return await self._abort(state, f"Planning failed: {exc}")

        with bind_run_context(run_id=state.run_id):
            logger.info(
                "batch_run_started",
                start_id=state.start_id,
                end_id=state.end_id,
                cursor=state.cursor_before,
                policy=AdvancementPolicy(config.advancement_policy).value,
            )
            state.phase = RunPhase.RUNNING
            try:
                items = self._process_range(state, config, on_progress)
                if config.run_timeout_seconds is not None:
                    await asyncio.wait_for(items, timeout=config.run_timeout_seconds)
                else:
                    await items

                new_cursor = compute_new_cursor(
                    config.advancement_policy,
                    state.cursor_before,
                    state.start_id,
                    state.end_id,
                    state.outcomes,
                )
                summary = self._summarize(state, new_cursor)
                await self._store.complete_run(state.run_id, new_cursor, summary)
                state.cursor_after = new_cursor
            except asyncio.CancelledError:
                await self._abort(state, "Run cancelled")
                raise
            except asyncio.TimeoutError:
                return await self._abort(
                    state, f"Run exceeded timeout of {config.run_timeout_seconds}s"
                )
            except Exception as exc:
                return await self._abort(state, f"{type(exc).__name__}: {exc}")

            state.phase = RunPhase.COMPLETED
            logger.info("batch_run_completed", summary=summary)
            return state.to_result("ok")

    async def _process_range(
        self,
        state: _RunState,
        config: BatchConfig,
        on_progress: ProgressCallback | None,
    ) -> None:
        """Process every id of the run strictly in order."""
        assert state.start_id is not None and state.end_id is not None
        for item_id in range(state.start_id, state.end_id + 1):
            outcome = await self._process_item(item_id, state.run_id, config)
            state.add(outcome)
            await self._log_outcome(outcome, state.run_id)
            await self._notify(on_progress, outcome)

            if item_id < state.end_id:
                await self._pause(config)

    async def _abort(self, state: _RunState, message: str) -> BatchResult:
        """Close the run log as ``failed`` and report the run as aborted."""
        state.phase = RunPhase.ABORTED
        if state.cursor_after is None:
            state.cursor_after = state.cursor_before
        logger.error(
            "batch_run_aborted",
            run_id=state.run_id,
            error=message,
            processed=len(state.outcomes),
        )
        if state.run_id is not None:
            try:
                await self._store.close_run(state.run_id, RunStatus.FAILED, message)
            except Exception as exc:
                logger.error("run_log_close_failed", run_id=state.run_id, error=str(exc))
        return state.to_result("error", error=message)

    # ------------------------------------------------------------------
    # Per-item pipeline
    # ------------------------------------------------------------------

    async def _process_item(
        self,
        item_id: int,
        run_id: int | None,
        config: BatchConfig,
    ) -> ItemOutcome:
        """Fetch, extract and save one id.  Never raises ``Exception``."""
        attempts = 0
        try:
            html: str | None = None
            while html is None:
                attempts += 1
                try:
                    html = await self._fetcher.fetch(item_id)
                except TransientFetchError as exc:
                    if attempts > config.retry_count:
                        raise
                    logger.warning(
                        "item_fetch_retry",
                        item_id=item_id,
                        attempt=attempts,
                        max_attempts=config.retry_count + 1,
                        error=str(exc),
                    )
                    await self._sleep(config.retry_delay_ms / 1000)

            record = self._extractor.extract(item_id, html)
            if not record.name or not record.name.strip():
                return ItemOutcome(
                    item_id=item_id,
                    status=OutcomeStatus.NOT_FOUND,
                    message="Page has no usable title",
                    attempts=attempts,
                )

            inserted = await self._store.record_item(record)
            message = f"Saved '{record.name}'" if inserted else f"Already stored '{record.name}'"
            return ItemOutcome(
                item_id=item_id,
                status=OutcomeStatus.OK,
                message=message,
                attempts=attempts,
                record=record,
            )
        except NotFoundError as exc:
            status, message = OutcomeStatus.NOT_FOUND, str(exc)
        except ParseError as exc:
            status, message = OutcomeStatus.PARSE_ERROR, str(exc)
        except TransientFetchError as exc:
            status, message = OutcomeStatus.ERROR, f"Gave up after {attempts} attempt(s): {exc}"
        except Exception as exc:
            logger.exception("item_unexpected_error", item_id=item_id)
            status, message = OutcomeStatus.ERROR, f"{type(exc).__name__}: {exc}"

        return ItemOutcome(item_id=item_id, status=status, message=message, attempts=attempts)

    async def _log_outcome(self, outcome: ItemOutcome, run_id: int | None) -> None:
        """Append to the outcome log; a failed append is logged, not raised."""
        log = logger.info if outcome.status == OutcomeStatus.OK else logger.warning
        log(
            "item_processed",
            item_id=outcome.item_id,
            status=outcome.status.value,
            attempts=outcome.attempts,
            detail=outcome.message,
        )
        try:
            await self._store.append_outcome(
                outcome.item_id,
                outcome.status,
                outcome.message,
                run_id=run_id,
                attempts=outcome.attempts,
            )
        except Exception as exc:
            logger.warning(
                "outcome_log_write_failed",
                item_id=outcome.item_id,
                status=outcome.status.value,
                error=str(exc),
            )

    async def _notify(self, on_progress: ProgressCallback | None, outcome: ItemOutcome) -> None:
        if on_progress is None:
            return
        try:
            result = on_progress(outcome)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            logger.warning("progress_callback_failed", item_id=outcome.item_id, error=str(exc))

    async def _pause(self, config: BatchConfig) -> None:
        """Sleep between items, jittered around ``delay_ms``."""
        delay_ms = float(config.delay_ms)
        if config.delay_jitter_ms:
            low = max(0, config.delay_ms - config.delay_jitter_ms)
            high = config.delay_ms + config.delay_jitter_ms
            delay_ms = self._rng.uniform(low, high)
        if delay_ms > 0:
            await self._sleep(delay_ms / 1000)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _summarize(state: _RunState, new_cursor: int) -> str:
        counts = {s.value: 0 for s in OutcomeStatus}
        for outcome in state.outcomes:
            counts[outcome.status.value] += 1
        breakdown = ", ".join(f"{k}={v}" for k, v in counts.items())
        return (
            f"Processed {len(state.outcomes)} ids [{state.start_id}-{state.end_id}]: "
            f"{breakdown}; cursor {state.cursor_before} -> {new_cursor}"
        )
