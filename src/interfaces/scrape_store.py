"""Abstract base classes for scrape persistence.

Two contracts, usually implemented by one object:

- :class:`IProgressStore` holds the singleton cursor (last attempted id).
- :class:`IOutcomeLog` holds item records, the per-item outcome log and
  the run log.

:class:`IScrapeStore` combines both with an explicit open/close lifecycle
so the batch scraper can hold the connection for exactly one run::

    async with store:
        last_id = await store.get_cursor()
        ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.scrape import ExtractedRecord, OutcomeStatus, RunRecord, RunStatus


class IProgressStore(ABC):
    """Contract for the durable scrape cursor."""

    @abstractmethod
    async def get_cursor(self) -> int:
        """Return the last attempted id, or ``0`` if never set."""

    @abstractmethod
    async def set_cursor(self, value: int) -> None:
        """Upsert the cursor to *value* atomically.

        Readers observe either the old or the new value, never a partial
        write.
        """


class IOutcomeLog(ABC):
    """Contract for item records, the outcome log and the run log."""

    @abstractmethod
    async def record_item(self, record: ExtractedRecord) -> bool:
        """Insert *record* unless a row with the same id exists.

        Returns ``True`` when a row was written, ``False`` when an earlier
        write already owns the id.  Never raises on duplicates.
        """

    @abstractmethod
    async def append_outcome(
        self,
        item_id: int,
        status: OutcomeStatus,
        message: str | None = None,
        run_id: int | None = None,
        attempts: int = 1,
    ) -> None:
        """Append one outcome-log entry for *item_id*."""

    @abstractmethod
    async def create_run(self, start_id: int, end_id: int, batch_size: int) -> int:
        """Open a run-log entry in status ``started``; return its id."""

    @abstractmethod
    async def close_run(self, run_id: int, status: RunStatus, message: str | None = None) -> None:
        """Move run *run_id* to its terminal *status*."""

    @abstractmethod
    async def get_item(self, item_id: int) -> dict[str, Any] | None:
        """Return the stored item row for *item_id*, or ``None``."""

    @abstractmethod
    async def get_outcomes(self, item_id: int) -> list[dict[str, Any]]:
        """Return every outcome-log entry for *item_id*, oldest first."""

    @abstractmethod
    async def get_recent_runs(self, limit: int = 10) -> list[RunRecord]:
        """Return the newest *limit* run-log entries, newest first."""


class IScrapeStore(IProgressStore, IOutcomeLog):
    """Cursor + outcome log behind one connection with explicit lifecycle."""

    @abstractmethod
    async def open(self) -> None:
        """Connect and make sure the tables and cursor row exist."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection.  Safe to call when already closed."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether a connection is currently held."""

    @abstractmethod
    async def complete_run(self, run_id: int, new_cursor: int, message: str | None = None) -> None:
        """Write *new_cursor* and close run *run_id* as ``success`` in one transaction.

        Either both writes land or neither does: on failure the cursor keeps
        its previous value and the run stays ``started``.
        """

    async def __aenter__(self) -> IScrapeStore:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this store."""
