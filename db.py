import sqlite3
import aiosqlite
import asyncio
import datetime
import json
import threading
from contextlib import contextmanager, asynccontextmanager
from typing import Any, List, Tuple, Optional

from algorithms.math_tools import MathTools


class Database:
    """Creates and migrates the analytics SQLite schema."""

    _TABLE_DEFINITIONS = {
        "kv_store": (
            """CREATE TABLE kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT ''
                );""",
            ["key", "value", "updated_at"],
        ),
        "analytics_logs": (
            """CREATE TABLE analytics_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp TEXT NOT NULL,
                    operation TEXT NOT NULL,
                    status TEXT NOT NULL,
                    message TEXT
                );""",
            ["id", "timestamp", "operation", "status", "message"],
        ),
    }

    def __init__(self, db_path: str = "analytics.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @property
    def db_path(self) -> str:
        return self._db_path

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path, timeout=30)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;")
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class KeyValueRepository(BaseRepository):
    """JSON values stored under namespaced keys."""

    def get(self, key: str, default: Any = None) -> Any:
        rows = self.fetch_all("SELECT value FROM kv_store WHERE key = ?;", (key,))
        if not rows:
            return default
        return json.loads(rows[0][0])

    def set(self, key: str, value: Any) -> None:
        self.execute(
            "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
            "updated_at = excluded.updated_at;",
            (key, json.dumps(value), _utcnow().isoformat()),
        )

    def delete(self, key: str) -> None:
        self.execute("DELETE FROM kv_store WHERE key = ?;", (key,))

    def keys(self, prefix: str = "") -> List[str]:
        rows = self.fetch_all(
            "SELECT key FROM kv_store WHERE key LIKE ? ORDER BY key;", (prefix + "%",)
        )
        return [r[0] for r in rows]


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def prune_history(
    entries: List[dict],
    now: datetime.datetime | None = None,
    days: int = 30,
) -> List[dict]:
    """Drop entries whose ``timestamp`` is older than ``days`` before ``now``."""
    cutoff = MathTools.as_utc(now) - datetime.timedelta(days=days)
    kept = []
    for entry in entries:
        ts = entry.get("timestamp")
        if not ts:
            continue
        if MathTools.parse_timestamp(ts) >= cutoff:
            kept.append(entry)
    return kept


def history_entry(snapshot: Any, now: datetime.datetime | None = None) -> dict:
    data = snapshot.model_dump() if hasattr(snapshot, "model_dump") else dict(snapshot)
    return {"timestamp": MathTools.as_utc(now).isoformat(), **data}


def decode_history(raw: Optional[str]) -> List[dict]:
    """Parse a stored history value.

    Raises ``ValueError`` when the value is not a JSON list of objects.
    """
    if raw is None:
        return []
    value = json.loads(raw)
    if not isinstance(value, list) or not all(isinstance(e, dict) for e in value):
        raise ValueError("stored recovery history is not a list of snapshots")
    return value


class RecoveryHistoryRepository(KeyValueRepository):
    """Rolling recovery snapshots kept under a single key.

    ``append`` performs its read-modify-write inside one ``BEGIN IMMEDIATE``
    transaction so writers from other connections or processes serialize on
    the SQLite write lock; threads of this process also share ``_lock``.
    """

    HISTORY_KEY = "recovery:history"
    RETENTION_DAYS = 30
    _lock = threading.Lock()

    def __init__(
        self, db_path: str = "analytics.db", retention_days: Optional[int] = None
    ) -> None:
        super().__init__(db_path)
        self.retention_days = retention_days or self.RETENTION_DAYS

    def load(self) -> List[dict]:
        rows = self.fetch_all(
            "SELECT value FROM kv_store WHERE key = ?;", (self.HISTORY_KEY,)
        )
        return decode_history(rows[0][0] if rows else None)

    def append(
        self, snapshot: Any, now: datetime.datetime | None = None
    ) -> List[dict]:
        entry = history_entry(snapshot, now)
        with self._lock, self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE;")
            rows = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?;", (self.HISTORY_KEY,)
            ).fetchall()
            history = decode_history(rows[0][0] if rows else None)
            history.append(entry)
            history = prune_history(history, now, self.retention_days)
            conn.execute(
                "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = excluded.updated_at;",
                (self.HISTORY_KEY, json.dumps(history), entry["timestamp"]),
            )
        return history

    def entries_since(
        self, days: int, now: datetime.datetime | None = None
    ) -> List[dict]:
        return prune_history(self.load(), now, days)

    def clear(self) -> None:
        """Remove the whole history. Irreversible."""
        with self._lock:
            self.delete(self.HISTORY_KEY)


class AnalyticsLogRepository(BaseRepository):
    """Repository for analysis run logs."""

    def log_success(self, operation: str) -> int:
        return self.execute(
            "INSERT INTO analytics_logs (timestamp, operation, status, message) VALUES (?, ?, 'success', NULL);",
            (_utcnow().isoformat(), operation),
        )

    def log_error(self, operation: str, message: str) -> int:
        return self.execute(
            "INSERT INTO analytics_logs (timestamp, operation, status, message) VALUES (?, ?, 'error', ?);",
            (_utcnow().isoformat(), operation, message),
        )

    def last_success(self, operation: Optional[str] = None) -> Optional[str]:
        if operation is None:
            rows = self.fetch_all(
                "SELECT timestamp FROM analytics_logs WHERE status='success' ORDER BY id DESC LIMIT 1;"
            )
        else:
            rows = self.fetch_all(
                "SELECT timestamp FROM analytics_logs WHERE status='success' AND operation=? ORDER BY id DESC LIMIT 1;",
                (operation,),
            )
        return rows[0][0] if rows else None

    def last_errors(self, limit: int = 5) -> list[tuple[str, str, str]]:
        rows = self.fetch_all(
            "SELECT timestamp, operation, message FROM analytics_logs WHERE status='error' ORDER BY id DESC LIMIT ?;",
            (limit,),
        )
        return [(r[0], r[1], r[2]) for r in rows]


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path, timeout=30)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return list(rows)


class AsyncRecoveryHistoryRepository(AsyncBaseRepository):
    """Async recovery history store sharing the key of the sync repository."""

    HISTORY_KEY = RecoveryHistoryRepository.HISTORY_KEY
    RETENTION_DAYS = RecoveryHistoryRepository.RETENTION_DAYS

    def __init__(
        self, db_path: str = "analytics.db", retention_days: Optional[int] = None
    ) -> None:
        super().__init__(db_path)
        self.retention_days = retention_days or self.RETENTION_DAYS
        self._lock = asyncio.Lock()

    async def load(self) -> List[dict]:
        rows = await self.fetch_all(
            "SELECT value FROM kv_store WHERE key = ?;", (self.HISTORY_KEY,)
        )
        return decode_history(rows[0][0] if rows else None)

    async def append(
        self, snapshot: Any, now: datetime.datetime | None = None
    ) -> List[dict]:
        entry = history_entry(snapshot, now)
        async with self._lock:
            async with self._async_connection() as conn:
                await conn.execute("BEGIN IMMEDIATE;")
                cursor = await conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?;", (self.HISTORY_KEY,)
                )
                rows = await cursor.fetchall()
                history = decode_history(rows[0][0] if rows else None)
                history.append(entry)
                history = prune_history(history, now, self.retention_days)
                await conn.execute(
                    "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                    "updated_at = excluded.updated_at;",
                    (self.HISTORY_KEY, json.dumps(history), entry["timestamp"]),
                )
        return history

    async def clear(self) -> None:
        async with self._lock:
            await self.execute(
                "DELETE FROM kv_store WHERE key = ?;", (self.HISTORY_KEY,)
            )
