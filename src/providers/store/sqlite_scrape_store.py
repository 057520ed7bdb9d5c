"""SQLite-backed scrape store.

Persists the scrape cursor, scraped items, the per-item outcome log and the
run log to a local SQLite database at ``data/scrape.db``.  Uses
``aiosqlite`` for async I/O.

Unlike the request-scoped providers, one connection is held from
:meth:`open` to :meth:`close` so a batch run owns its handle for the whole
run (``async with store: ...``).  Every ``aiosqlite`` error surfaces as
:class:`~src.utils.errors.PersistenceError`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from src.interfaces.scrape_store import IScrapeStore
from src.models.scrape import ExtractedRecord, OutcomeStatus, RunRecord, RunStatus
from src.utils.errors import PersistenceError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/scrape.db")

_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

_CREATE_TABLES_SQL = [
    f"""\
CREATE TABLE IF NOT EXISTS scraper_state (
    id          INTEGER PRIMARY KEY CHECK (id = 1),
    last_id     INTEGER NOT NULL DEFAULT 0 CHECK (last_id >= 0),
    updated_at  TEXT    NOT NULL DEFAULT ({_NOW})
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS items (
    id          INTEGER PRIMARY KEY,
    name        TEXT,
    poster_url  TEXT,
    sync_data   TEXT,
    scraped_at  TEXT    NOT NULL DEFAULT ({_NOW})
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS item_outcomes (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id     INTEGER NOT NULL,
    run_id      INTEGER,
    status      TEXT    NOT NULL,
    message     TEXT,
    attempts    INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT    NOT NULL DEFAULT ({_NOW})
);
""",
    f"""\
CREATE TABLE IF NOT EXISTS scrape_runs (
    run_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    start_id    INTEGER NOT NULL,
    end_id      INTEGER NOT NULL,
    batch_size  INTEGER NOT NULL,
    status      TEXT    NOT NULL,
    message     TEXT,
    started_at  TEXT    NOT NULL DEFAULT ({_NOW}),
    finished_at TEXT
);
""",
]

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_outcomes_item ON item_outcomes(item_id);",
    "CREATE INDEX IF NOT EXISTS idx_outcomes_run ON item_outcomes(run_id);",
]

_SEED_CURSOR_SQL = "INSERT OR IGNORE INTO scraper_state (id, last_id) VALUES (1, 0);"

_UPSERT_CURSOR_SQL = f"""\
INSERT INTO scraper_state (id, last_id)
VALUES (1, ?)
ON CONFLICT(id)
DO UPDATE SET last_id    = excluded.last_id,
              updated_at = {_NOW};
"""

_INSERT_ITEM_SQL = """\
INSERT INTO items (id, name, poster_url, sync_data)
VALUES (?, ?, ?, ?)
ON CONFLICT(id) DO NOTHING;
"""

_INSERT_OUTCOME_SQL = """\
INSERT INTO item_outcomes (item_id, run_id, status, message, attempts)
VALUES (?, ?, ?, ?, ?);
"""

_INSERT_RUN_SQL = """\
INSERT INTO scrape_runs (start_id, end_id, batch_size, status)
VALUES (?, ?, ?, ?);
"""

# Only a run still in 'started' may be closed; a second close is a no-op.
_CLOSE_RUN_SQL = f"""\
UPDATE scrape_runs
SET status = ?, message = ?, finished_at = {_NOW}
WHERE run_id = ? AND status = 'started';
"""

_RUN_COLUMNS = "run_id, start_id, end_id, batch_size, status, message, started_at, finished_at"


class SQLiteScrapeStore(IScrapeStore):
    """SQLite persistence for cursor, items, outcome log and run log."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Connect, then create tables, indices and the cursor row if missing."""
        if self._db is not None:
            return
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            db = await aiosqlite.connect(str(self._db_path))
        except (OSError, aiosqlite.Error) as exc:
            raise PersistenceError(
                message=f"Cannot open {self._db_path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        db.row_factory = aiosqlite.Row
        self._db = db
        try:
            await db.execute("PRAGMA journal_mode=WAL;")
            for table_sql in _CREATE_TABLES_SQL:
                await db.execute(table_sql)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.execute(_SEED_CURSOR_SQL)
            await db.commit()
        except aiosqlite.Error as exc:
            await self.close()
            raise PersistenceError(
                message=f"Schema initialisation failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("scrape_db_opened", path=str(self._db_path))

    async def close(self) -> None:
        if self._db is None:
            return
        db, self._db = self._db, None
        try:
            await db.close()
        except aiosqlite.Error as exc:
            logger.warning("scrape_db_close_failed", path=str(self._db_path), error=str(exc))

    @property
    def is_open(self) -> bool:
        return self._db is not None

    # ------------------------------------------------------------------
    # IProgressStore
    # ------------------------------------------------------------------

    async def get_cursor(self) -> int:
        row = await self._fetchone("SELECT last_id FROM scraper_state WHERE id = 1;")
        return int(row["last_id"]) if row else 0

    async def set_cursor(self, value: int) -> None:
        if value < 0:
            msg = f"Cursor must be >= 0, got {value}"
            raise ValueError(msg)
        await self._write(_UPSERT_CURSOR_SQL, (value,))
        logger.debug("cursor_saved", last_id=value)

    # ------------------------------------------------------------------
    # IOutcomeLog
    # ------------------------------------------------------------------

    async def record_item(self, record: ExtractedRecord) -> bool:
        sync_json = json.dumps(record.sync_data) if record.sync_data is not None else None
        rowcount = await self._write(
            _INSERT_ITEM_SQL,
            (record.id, record.name, record.poster_url, sync_json),
        )
        return rowcount == 1

    async def append_outcome(
        self,
        item_id: int,
        status: OutcomeStatus,
        message: str | None = None,
        run_id: int | None = None,
        attempts: int = 1,
    ) -> None:
        await self._write(
            _INSERT_OUTCOME_SQL,
            (item_id, run_id, OutcomeStatus(status).value, message, attempts),
        )

    async def create_run(self, start_id: int, end_id: int, batch_size: int) -> int:
        db = self._require_open()
        try:
            cursor = await db.execute(
                _INSERT_RUN_SQL,
                (start_id, end_id, batch_size, RunStatus.STARTED.value),
            )
            await db.commit()
        except aiosqlite.Error as exc:
            await self._rollback_quietly(db)
            raise PersistenceError(
                message=f"Cannot create run log entry: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        run_id = cursor.lastrowid
        if run_id is None:
            raise PersistenceError(
                message="Run log insert returned no id",
                provider_name=self.get_provider_name(),
            )
        return int(run_id)

    async def close_run(self, run_id: int, status: RunStatus, message: str | None = None) -> None:
        status = RunStatus(status)
        if status == RunStatus.STARTED:
            msg = "A run can only be closed as 'success' or 'failed'"
            raise ValueError(msg)
        await self._write(_CLOSE_RUN_SQL, (status.value, message, run_id))

    async def complete_run(self, run_id: int, new_cursor: int, message: str | None = None) -> None:
        if new_cursor < 0:
            msg = f"Cursor must be >= 0, got {new_cursor}"
            raise ValueError(msg)
        db = self._require_open()
        # Both statements share the implicit transaction opened by the first
        # write; nothing is visible until commit.
        try:
            await db.execute(_UPSERT_CURSOR_SQL, (new_cursor,))
            cursor = await db.execute(
                _CLOSE_RUN_SQL, (RunStatus.SUCCESS.value, message, run_id)
            )
            if cursor.rowcount != 1:
                await db.rollback()
                raise PersistenceError(
                    message=f"Run {run_id} is not open; cursor left unchanged",
                    provider_name=self.get_provider_name(),
                )
            await db.commit()
        except aiosqlite.Error as exc:
            await self._rollback_quietly(db)
            raise PersistenceError(
                message=f"Cannot complete run {run_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.debug("run_completed", run_id=run_id, last_id=new_cursor)

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_item(self, item_id: int) -> dict[str, Any] | None:
        row = await self._fetchone(
            "SELECT id, name, poster_url, sync_data, scraped_at FROM items WHERE id = ?;",
            (item_id,),
        )
        if row is None:
            return None
        item = dict(row)
        if item["sync_data"] is not None:
            item["sync_data"] = json.loads(item["sync_data"])
        return item

    async def count_items(self) -> int:
        row = await self._fetchone("SELECT COUNT(*) AS n FROM items;")
        return int(row["n"]) if row else 0

    async def get_outcomes(self, item_id: int) -> list[dict[str, Any]]:
        rows = await self._fetchall(
            "SELECT id, item_id, run_id, status, message, attempts, created_at "
            "FROM item_outcomes WHERE item_id = ? ORDER BY id ASC;",
            (item_id,),
        )
        return [dict(r) for r in rows]

    async def get_run(self, run_id: int) -> RunRecord | None:
        row = await self._fetchone(
            f"SELECT {_RUN_COLUMNS} FROM scrape_runs WHERE run_id = ?;",
            (run_id,),
        )
        return RunRecord.model_validate(dict(row)) if row else None

    async def get_recent_runs(self, limit: int = 10) -> list[RunRecord]:
        rows = await self._fetchall(
            f"SELECT {_RUN_COLUMNS} FROM scrape_runs ORDER BY run_id DESC LIMIT ?;",
            (limit,),
        )
        return [RunRecord.model_validate(dict(r)) for r in rows]

    def get_provider_name(self) -> str:
        return "sqlite_store"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _require_open(self) -> aiosqlite.Connection:
        if self._db is None:
            raise PersistenceError(
                message="Scrape store is not open",
                provider_name=self.get_provider_name(),
            )
        return self._db

    async def _write(self, sql: str, params: tuple[Any, ...]) -> int:
        """Execute one statement and commit; return the affected row count."""
        db = self._require_open()
        try:
            cursor = await db.execute(sql, params)
            await db.commit()
        except aiosqlite.Error as exc:
            await self._rollback_quietly(db)
            raise PersistenceError(
                message=f"Write failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return cursor.rowcount

    async def _rollback_quietly(self, db: aiosqlite.Connection) -> None:
        try:
            await db.rollback()
        except aiosqlite.Error as exc:
            logger.warning("scrape_db_rollback_failed", error=str(exc))

    async def _fetchone(self, sql: str, params: tuple[Any, ...] = ()) -> aiosqlite.Row | None:
        db = self._require_open()
        try:
            cursor = await db.execute(sql, params)
            return await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Read failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def _fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> list[aiosqlite.Row]:
        db = self._require_open()
        try:
            cursor = await db.execute(sql, params)
            return list(await cursor.fetchall())
        except aiosqlite.Error as exc:
            raise PersistenceError(
                message=f"Read failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
