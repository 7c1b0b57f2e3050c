"""SQLite-backed durable cache provider.

Persists memoized results to a SQLite database on disk so they survive
process restarts.  Values are stored as pickle payloads alongside an
absolute wall-clock expiry, NULL for entries stored with ``ttl=None``.
Uses sync ``sqlite3`` because the engine's ``cache()`` call is
synchronous; each operation touches a single row.

Expired rows are ignored on read, overwritten on the next store, and
pruned on :meth:`initialize`.
"""

from __future__ import annotations

import pickle
import sqlite3
import threading
import time
from pathlib import Path
from typing import Callable, TypeVar

import structlog

from memocache.interfaces.durable_cache import IDurableCache
from memocache.utils.logging import get_logger

_T = TypeVar("_T")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS {table} (
    cache_key  TEXT PRIMARY KEY,
    payload    BLOB NOT NULL,
    expires_at REAL
);
"""

_CREATE_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_{table}_expires ON {table}(expires_at);"
)

_UPSERT_SQL = """\
INSERT INTO {table} (cache_key, payload, expires_at)
VALUES (?, ?, ?)
ON CONFLICT(cache_key)
DO UPDATE SET payload = excluded.payload,
              expires_at = excluded.expires_at;
"""

_SELECT_SQL = "SELECT payload, expires_at FROM {table} WHERE cache_key = ?;"

_PRUNE_SQL = "DELETE FROM {table} WHERE expires_at IS NOT NULL AND expires_at <= ?;"

_CLEAR_SQL = "DELETE FROM {table};"

_COUNT_SQL = (
    "SELECT COUNT(*) FROM {table} WHERE expires_at IS NULL OR expires_at > ?;"
)


class SQLiteDurableCache(IDurableCache):
    """Durable get-or-compute cache stored in a SQLite table.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.
    table_name:
        Table name to use.  Allows several caches within one database.
    clock:
        Wall-clock source for expiry timestamps.  Tests inject a fake clock.
    """

    def __init__(
        self,
        db_path: str | Path,
        table_name: str = "memo_entries",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = Path(db_path)
        self._table = table_name
        self._clock = clock
        self._lock = threading.RLock()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create the table and index, and prune expired rows.

        Must be called once before use (``build_engine`` does this).
        """
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            conn.execute(_CREATE_TABLE_SQL.format(table=self._table))
            conn.execute(_CREATE_INDEX_SQL.format(table=self._table))
            cursor = conn.execute(_PRUNE_SQL.format(table=self._table), (self._clock(),))
            pruned = cursor.rowcount
            conn.commit()
        finally:
            conn.close()

        self._logger.info(
            "sqlite_cache_initialized",
            db_path=str(self._db_path),
            table=self._table,
            pruned=pruned,
        )

    # ------------------------------------------------------------------
    # IDurableCache implementation
    # ------------------------------------------------------------------

    def get_or_compute(self, key: str, ttl: int | None, compute: Callable[[], _T]) -> _T:
        """Return the unexpired stored value for *key*, or compute and store it."""
        with self._lock:
            found, value = self._load(key)
            if found:
                self._logger.debug("durable_hit", key=key)
                return value

            self._logger.debug("durable_miss", key=key, ttl=ttl)
            value = compute()
            if ttl is None:
                self._store(key, value, None)
            elif ttl > 0:
                self._store(key, value, self._clock() + ttl)
            return value

    def clear(self) -> None:
        """Delete every row from the cache table."""
        with self._lock:
            conn = self._connect()
            try:
                conn.execute(_CLEAR_SQL.format(table=self._table))
                conn.commit()
            finally:
                conn.close()
        self._logger.info("durable_cleared", provider=self.get_provider_name())

    def __len__(self) -> int:
        """Return the number of unexpired rows."""
        conn = self._connect()
        try:
            cursor = conn.execute(_COUNT_SQL.format(table=self._table), (self._clock(),))
            row = cursor.fetchone()
            return row[0] if row else 0
        finally:
            conn.close()

    def get_provider_name(self) -> str:
        return "sqlite"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        """Open a new SQLite connection with WAL mode for concurrency."""
        conn = sqlite3.connect(str(self._db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _load(self, key: str) -> tuple[bool, object]:
        """Return ``(True, value)`` for an unexpired row, else ``(False, None)``."""
        conn = self._connect()
        try:
            cursor = conn.execute(_SELECT_SQL.format(table=self._table), (key,))
            row = cursor.fetchone()
        finally:
            conn.close()

        if row is None:
            return False, None

        payload, expires_at = row
        if expires_at is not None and expires_at <= self._clock():
            return False, None

        try:
            return True, pickle.loads(payload)
        except Exception as exc:
            # Treated as a miss; the next store overwrites the row.
            self._logger.warning(
                "durable_payload_corrupt",
                key=key,
                error=str(exc)[:200],
            )
            return False, None

    def _store(self, key: str, value: object, expires_at: float | None) -> None:
        payload = pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)
        conn = self._connect()
        try:
            conn.execute(
                _UPSERT_SQL.format(table=self._table),
                (key, payload, expires_at),
            )
            conn.commit()
        finally:
            conn.close()
