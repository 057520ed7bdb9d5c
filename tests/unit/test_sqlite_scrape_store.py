"""Unit tests for SQLiteScrapeStore.

Tests cover: lifecycle (open/close/async with), the cursor, item records
(first write wins), the outcome log, the run log and the read helpers.

Each test uses a temporary SQLite database to ensure isolation.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from src.models.scrape import ExtractedRecord, OutcomeStatus, RunStatus
from src.providers.store.sqlite_scrape_store import SQLiteScrapeStore
from src.utils.errors import PersistenceError


def _record(item_id: int, name: str = "Sakamoto Days", **kwargs) -> ExtractedRecord:
    return ExtractedRecord(id=item_id, name=name, **kwargs)


# ═══════════════════════════════════════════════════════════════════════
# Lifecycle
# ═══════════════════════════════════════════════════════════════════════


class TestLifecycle:
    """Opening, closing and schema creation."""

    @pytest.mark.asyncio
    async def test_open_creates_parent_dir_and_seeds_cursor(self, db_path: Path) -> None:
        store = SQLiteScrapeStore(db_path=db_path)
        async with store:
            assert store.is_open
            assert await store.get_cursor() == 0
        assert db_path.exists()
        assert not store.is_open

    @pytest.mark.asyncio
    async def test_open_is_idempotent(self, store: SQLiteScrapeStore) -> None:
        await store.open()
        await store.set_cursor(3)
        assert await store.get_cursor() == 3

    @pytest.mark.asyncio
    async def test_close_twice_is_safe(self, db_path: Path) -> None:
        store = SQLiteScrapeStore(db_path=db_path)
        await store.open()
        await store.close()
        await store.close()
        assert not store.is_open

    @pytest.mark.asyncio
    async def test_use_before_open_raises(self, db_path: Path) -> None:
        store = SQLiteScrapeStore(db_path=db_path)
        with pytest.raises(PersistenceError, match="not open"):
            await store.get_cursor()

    @pytest.mark.asyncio
    async def test_unopenable_path_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = SQLiteScrapeStore(db_path=blocker / "scrape.db")
        with pytest.raises(PersistenceError) as exc_info:
            await store.open()
        assert exc_info.value.provider_name == "sqlite_store"

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, db_path: Path) -> None:
        async with SQLiteScrapeStore(db_path=db_path) as store:
            await store.set_cursor(42)
            await store.record_item(_record(42))

        async with SQLiteScrapeStore(db_path=db_path) as store:
            assert await store.get_cursor() == 42
            assert await store.count_items() == 1


# ═══════════════════════════════════════════════════════════════════════
# Cursor
# ═══════════════════════════════════════════════════════════════════════


class TestCursor:
    """The singleton last-attempted-id row."""

    @pytest.mark.asyncio
    async def test_set_and_get(self, store: SQLiteScrapeStore) -> None:
        await store.set_cursor(10)
        await store.set_cursor(15)
        assert await store.get_cursor() == 15

    @pytest.mark.asyncio
    async def test_can_move_backwards_by_hand(self, store: SQLiteScrapeStore) -> None:
        await store.set_cursor(100)
        await store.set_cursor(50)
        assert await store.get_cursor() == 50

    @pytest.mark.asyncio
    async def test_negative_rejected(self, store: SQLiteScrapeStore) -> None:
        with pytest.raises(ValueError):
            await store.set_cursor(-1)
        assert await store.get_cursor() == 0


# ═══════════════════════════════════════════════════════════════════════
# Items
# ═══════════════════════════════════════════════════════════════════════


class TestItems:
    """Item records keyed by id; the first write wins."""

    @pytest.mark.asyncio
    async def test_record_and_read_back(self, store: SQLiteScrapeStore) -> None:
        inserted = await store.record_item(
            _record(
                7,
                poster_url="https://img.example/7.jpg",
                sync_data={"anime_id": "7", "episode": 3},
            )
        )
        item = await store.get_item(7)

        assert inserted is True
        assert item["id"] == 7
        assert item["name"] == "Sakamoto Days"
        assert item["poster_url"] == "https://img.example/7.jpg"
        assert item["sync_data"] == {"anime_id": "7", "episode": 3}
        assert item["scraped_at"]

    @pytest.mark.asyncio
    async def test_second_write_is_ignored(self, store: SQLiteScrapeStore) -> None:
        assert await store.record_item(_record(7, name="First")) is True
        assert await store.record_item(_record(7, name="Second")) is False

        item = await store.get_item(7)
        assert item["name"] == "First"
        assert await store.count_items() == 1

    @pytest.mark.asyncio
    async def test_missing_fields_stored_as_null(self, store: SQLiteScrapeStore) -> None:
        await store.record_item(_record(8))
        item = await store.get_item(8)
        assert item["poster_url"] is None
        assert item["sync_data"] is None

    @pytest.mark.asyncio
    async def test_get_missing_item(self, store: SQLiteScrapeStore) -> None:
        assert await store.get_item(999) is None


# ═══════════════════════════════════════════════════════════════════════
# Outcome log
# ═══════════════════════════════════════════════════════════════════════


class TestOutcomeLog:
    """Append-only per-item outcomes."""

    @pytest.mark.asyncio
    async def test_append_keeps_every_attempt_in_order(self, store: SQLiteScrapeStore) -> None:
        await store.append_outcome(5, OutcomeStatus.ERROR, "HTTP 503", run_id=1, attempts=3)
        await store.append_outcome(5, OutcomeStatus.OK, "Saved", run_id=2)

        rows = await store.get_outcomes(5)
        assert [r["status"] for r in rows] == ["error", "ok"]
        assert rows[0]["attempts"] == 3
        assert rows[0]["message"] == "HTTP 503"
        assert rows[1]["run_id"] == 2
        assert rows[1]["attempts"] == 1

    @pytest.mark.asyncio
    async def test_accepts_plain_status_string(self, store: SQLiteScrapeStore) -> None:
        await store.append_outcome(6, "not_found")
        rows = await store.get_outcomes(6)
        assert rows[0]["status"] == "not_found"
        assert rows[0]["run_id"] is None

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, store: SQLiteScrapeStore) -> None:
        with pytest.raises(ValueError):
            await store.append_outcome(6, "maybe")

    @pytest.mark.asyncio
    async def test_no_outcomes(self, store: SQLiteScrapeStore) -> None:
        assert await store.get_outcomes(1) == []


# ═══════════════════════════════════════════════════════════════════════
# Run log
# ═══════════════════════════════════════════════════════════════════════


class TestRunLog:
    """Run entries opened as 'started' and closed once."""

    @pytest.mark.asyncio
    async def test_create_then_close(self, store: SQLiteScrapeStore) -> None:
        run_id = await store.create_run(11, 20, 10)
        started = await store.get_run(run_id)
        assert started.status == RunStatus.STARTED
        assert started.finished_at is None

        await store.close_run(run_id, RunStatus.SUCCESS, "Processed 10 ids")
        finished = await store.get_run(run_id)
        assert finished.status == RunStatus.SUCCESS
        assert finished.message == "Processed 10 ids"
        assert finished.finished_at is not None
        assert (finished.start_id, finished.end_id, finished.batch_size) == (11, 20, 10)

    @pytest.mark.asyncio
    async def test_closed_run_is_not_reopened(self, store: SQLiteScrapeStore) -> None:
        run_id = await store.create_run(1, 5, 5)
        await store.close_run(run_id, RunStatus.FAILED, "disk full")
        await store.close_run(run_id, RunStatus.SUCCESS, "late")

        run = await store.get_run(run_id)
        assert run.status == RunStatus.FAILED
        assert run.message == "disk full"

    @pytest.mark.asyncio
    async def test_close_as_started_rejected(self, store: SQLiteScrapeStore) -> None:
        run_id = await store.create_run(1, 5, 5)
        with pytest.raises(ValueError):
            await store.close_run(run_id, RunStatus.STARTED)

    @pytest.mark.asyncio
    async def test_recent_runs_newest_first(self, store: SQLiteScrapeStore) -> None:
        ids = [await store.create_run(i * 10 + 1, i * 10 + 10, 10) for i in range(3)]

        runs = await store.get_recent_runs(limit=2)
        assert [r.run_id for r in runs] == [ids[2], ids[1]]

    @pytest.mark.asyncio
    async def test_get_missing_run(self, store: SQLiteScrapeStore) -> None:
        assert await store.get_run(12345) is None

    def test_provider_name(self) -> None:
        assert SQLiteScrapeStore().get_provider_name() == "sqlite_store"


# ═══════════════════════════════════════════════════════════════════════
# Run completion
# ═══════════════════════════════════════════════════════════════════════


class TestCompleteRun:
    """Cursor write and run-log close land together or not at all."""

    @pytest.mark.asyncio
    async def test_writes_cursor_and_closes_run(self, store: SQLiteScrapeStore) -> None:
        run_id = await store.create_run(1, 10, 10)
        await store.complete_run(run_id, 10, "Processed 10 ids")

        run = await store.get_run(run_id)
        assert await store.get_cursor() == 10
        assert run.status == RunStatus.SUCCESS
        assert run.message == "Processed 10 ids"
        assert run.finished_at is not None

    @pytest.mark.asyncio
    async def test_closed_run_leaves_cursor_unchanged(self, store: SQLiteScrapeStore) -> None:
        await store.set_cursor(5)
        run_id = await store.create_run(6, 10, 5)
        await store.close_run(run_id, RunStatus.FAILED, "timeout")

        with pytest.raises(PersistenceError, match="not open"):
            await store.complete_run(run_id, 10, "late")

        assert await store.get_cursor() == 5
        assert (await store.get_run(run_id)).status == RunStatus.FAILED

    @pytest.mark.asyncio
    async def test_unknown_run_leaves_cursor_unchanged(self, store: SQLiteScrapeStore) -> None:
        with pytest.raises(PersistenceError):
            await store.complete_run(999, 10)
        assert await store.get_cursor() == 0

    @pytest.mark.asyncio
    async def test_failed_close_rolls_back_cursor(self, store: SQLiteScrapeStore) -> None:
        run_id = await store.create_run(1, 3, 3)
        with patch(
            "src.providers.store.sqlite_scrape_store._CLOSE_RUN_SQL",
            "UPDATE missing_run_log SET status = ?, message = ? WHERE run_id = ?;",
        ):
            with pytest.raises(PersistenceError, match="Cannot complete run"):
                await store.complete_run(run_id, 3)

        assert await store.get_cursor() == 0
        assert (await store.get_run(run_id)).status == RunStatus.STARTED
        # the connection is usable afterwards
        await store.complete_run(run_id, 3)
        assert await store.get_cursor() == 3

    @pytest.mark.asyncio
    async def test_negative_cursor_rejected(self, store: SQLiteScrapeStore) -> None:
        run_id = await store.create_run(1, 3, 3)
        with pytest.raises(ValueError):
            await store.complete_run(run_id, -1)
