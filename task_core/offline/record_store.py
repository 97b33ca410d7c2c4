# =============================================================================
# task_core/offline/record_store.py
# Local SQLite Record Store for Tasks
# =============================================================================
"""
RecordStore - SQLite-backed canonical local copy of every task.

Features:
- Versioned schema with additive migration of older stores
- Atomic transactions (commit or roll back as a unit)
- Upsert / point lookup / owner-scoped sorted query / delete
- Guarded "synced" acknowledgment used by push completions
- Change callbacks so views can re-render after a commit
- DataFrame export (pandas)
"""

from __future__ import annotations
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union
import logging

import pandas as pd

from task_core.errors import LocalStoreError
from task_core.models import Task, format_timestamp

logger = logging.getLogger(__name__)

# Bump on any structural change to the tasks table
SCHEMA_VERSION = 2

TABLE = "tasks"

CREATE_TABLE = f"""
    CREATE TABLE IF NOT EXISTS {TABLE} (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT,
        is_completed INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        synced INTEGER NOT NULL DEFAULT 0,
        user_id TEXT NOT NULL
    )
"""

CREATE_INDEX = f"""
    CREATE INDEX IF NOT EXISTS idx_{TABLE}_user_created
    ON {TABLE}(user_id, created_at DESC)
"""

# Columns that may be missing from stores written by an earlier version,
# with the DDL used to backfill them
MIGRATION_COLUMNS = {
    "description": "TEXT",
    "is_completed": "INTEGER NOT NULL DEFAULT 0",
    "synced": "INTEGER NOT NULL DEFAULT 0",
}

COLUMNS = ("id", "title", "description", "is_completed", "created_at", "updated_at", "synced", "user_id")


@dataclass(frozen=True)
class StoreChange:
    """A committed change: kind is "insert", "upsert", "update" or "delete"."""
    kind: str
    task_ids: Tuple[str, ...]


class RecordStore:
    """
    Transactional local store for Task records.

    Each thread gets its own SQLite connection; SQLite serializes writers, so
    a write made inside ``transaction()`` is atomic and visible to every
    subsequent read once committed.

    Usage:
        store = RecordStore(Path("local_data/tasks.db"))
        store.initialize()
        store.insert(task)
        tasks = store.list_for_user("uid-123")
    """

    BUSY_TIMEOUT = 30  # Seconds to wait on a locked database

    def __init__(self, db_path: Union[str, Path]):
        """
        Initialize the record store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._ensure_directory()
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._callbacks: List[Callable[[StoreChange], None]] = []
        self._initialized = False

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "connection", None) is None:
            try:
                conn = sqlite3.connect(
                    str(self.db_path),
                    timeout=self.BUSY_TIMEOUT,
                    check_same_thread=False,
                )
            except sqlite3.Error as e:
                raise LocalStoreError(f"Cannot open local store: {e}", operation="connect") from e
            conn.row_factory = sqlite3.Row
            self._local.connection = conn
            with self._connections_lock:
                self._connections.append(conn)
        return self._local.connection

    @contextmanager
    def transaction(self, operation: str = "transaction") -> Iterator[sqlite3.Connection]:
        """
        Context manager for an atomic write.

        Raises:
            LocalStoreError: If any statement fails; nothing is committed
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise LocalStoreError(f"Local transaction failed: {e}", operation=operation) from e
        except Exception:
            conn.rollback()
            raise

    def _read(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        try:
            return self._get_connection().execute(sql, list(params)).fetchall()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Local query failed: {e}", operation="read") from e

    # =========================================================================
    # SCHEMA
    # =========================================================================

    @property
    def schema_version(self) -> int:
        return self._read("PRAGMA user_version")[0][0]

    def initialize(self) -> None:
        """
        Create or migrate the schema.

        A store written by an older schema version gets any missing columns
        added with their defaults. A store from a newer version is refused.
        """
        if self._initialized:
            return

        stored_version = self.schema_version
        if stored_version > SCHEMA_VERSION:
            raise LocalStoreError(
                f"Local store schema v{stored_version} is newer than supported v{SCHEMA_VERSION}",
                operation="initialize",
                details={"db_path": str(self.db_path)},
            )

        with self.transaction("initialize") as conn:
            conn.execute(CREATE_TABLE)
            existing = {row["name"] for row in conn.execute(f"PRAGMA table_info({TABLE})")}
            for column, ddl in MIGRATION_COLUMNS.items():
                if column not in existing:
                    conn.execute(f"ALTER TABLE {TABLE} ADD COLUMN {column} {ddl}")
                    logger.info(f"Migrated local store: added column {column}")
            conn.execute(CREATE_INDEX)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

        self._initialized = True
        logger.info(
            f"Local store initialized at: {self.db_path} "
            f"(schema v{stored_version} -> v{SCHEMA_VERSION})"
        )

    # =========================================================================
    # WRITES
    # =========================================================================

    def insert(self, task: Task) -> str:
        """Insert a new task; fails if the id already exists."""
        row = task.to_row()
        placeholders = ", ".join("?" for _ in COLUMNS)
        with self.transaction("insert") as conn:
            conn.execute(
                f"INSERT INTO {TABLE} ({', '.join(COLUMNS)}) VALUES ({placeholders})",
                [row[c] for c in COLUMNS],
            )
        self._notify_callbacks(StoreChange("insert", (task.id,)))
        return task.id

    def upsert(self, task: Task) -> bool:
        """Insert or replace a task by id. Returns True if anything changed."""
        return self.upsert_many([task]) > 0

    def upsert_many(self, tasks: Iterable[Task]) -> int:
        """
        Insert or update several tasks in a single transaction.

        Rows whose stored values already match are left untouched, so merging
        the same data twice produces no writes and no change notifications.

        Returns:
            Number of rows inserted or modified
        """
        changed: List[str] = []
        set_clause = ", ".join(f"{c} = excluded.{c}" for c in COLUMNS if c != "id")
        placeholders = ", ".join("?" for _ in COLUMNS)

        with self.transaction("upsert") as conn:
            for task in tasks:
                row = task.to_row()
                current = conn.execute(
                    f"SELECT * FROM {TABLE} WHERE id = ?", [task.id]
                ).fetchone()
                if current is not None and Task.from_row(current) == task:
                    continue
                conn.execute(
                    f"INSERT INTO {TABLE} ({', '.join(COLUMNS)}) VALUES ({placeholders}) "
                    f"ON CONFLICT(id) DO UPDATE SET {set_clause}",
                    [row[c] for c in COLUMNS],
                )
                changed.append(task.id)

        if changed:
            self._notify_callbacks(StoreChange("upsert", tuple(changed)))
        return len(changed)

    def update_fields(self, task_id: str, **fields: Any) -> bool:
        """
        Update some columns of one task.

        Returns:
            True if the task existed and was updated
        """
        unknown = set(fields) - set(COLUMNS[1:])
        if unknown:
            raise LocalStoreError(f"Unknown task fields: {sorted(unknown)}", operation="update")

        values = {}
        for key, value in fields.items():
            if isinstance(value, datetime):
                value = format_timestamp(value)
            elif isinstance(value, bool):
                value = int(value)
            values[key] = value

        set_clause = ", ".join(f"{k} = ?" for k in values)
        with self.transaction("update") as conn:
            cursor = conn.execute(
                f"UPDATE {TABLE} SET {set_clause} WHERE id = ?",
                list(values.values()) + [task_id],
            )
            success = cursor.rowcount > 0

        if success:
            self._notify_callbacks(StoreChange("update", (task_id,)))
        return success

    def mark_synced(self, task_id: str, expected_updated_at: Optional[datetime] = None) -> bool:
        """
        Flag a task as acknowledged by the remote store.

        The flag is only set when the record still exists and, if
        ``expected_updated_at`` is given, has not been modified since the push
        that is being acknowledged was issued.

        Returns:
            True if the flag was set
        """
        sql = f"UPDATE {TABLE} SET synced = 1 WHERE id = ? AND synced = 0"
        params: List[Any] = [task_id]
        if expected_updated_at is not None:
            sql += " AND updated_at = ?"
            params.append(format_timestamp(expected_updated_at))

        with self.transaction("mark_synced") as conn:
            success = conn.execute(sql, params).rowcount > 0

        if success:
            self._notify_callbacks(StoreChange("update", (task_id,)))
        return success

    def delete(self, task_id: str) -> bool:
        """Delete a task. Returns True if a row was removed."""
        with self.transaction("delete") as conn:
            success = conn.execute(f"DELETE FROM {TABLE} WHERE id = ?", [task_id]).rowcount > 0

        if success:
            self._notify_callbacks(StoreChange("delete", (task_id,)))
        return success

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, task_id: str, user_id: Optional[str] = None) -> Optional[Task]:
        """Point lookup by id, optionally restricted to one owner."""
        sql = f"SELECT * FROM {TABLE} WHERE id = ?"
        params = [task_id]
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)

        rows = self._read(sql, params)
        return Task.from_row(rows[0]) if rows else None

    def list_for_user(self, user_id: str) -> List[Task]:
        """All tasks owned by ``user_id``, newest first."""
        rows = self._read(
            f"SELECT * FROM {TABLE} WHERE user_id = ? ORDER BY created_at DESC, id",
            [user_id],
        )
        return [Task.from_row(row) for row in rows]

    def count_unsynced(self, user_id: Optional[str] = None) -> int:
        """Number of tasks that still owe a push."""
        sql = f"SELECT COUNT(*) AS count FROM {TABLE} WHERE synced = 0"
        params = []
        if user_id is not None:
            sql += " AND user_id = ?"
            params.append(user_id)
        return self._read(sql, params)[0]["count"]

    def to_dataframe(self, user_id: str) -> pd.DataFrame:
        """
        Load one user's tasks into a pandas DataFrame, newest first.

        Timestamp columns are parsed to UTC datetimes and flags to booleans.
        """
        try:
            df = pd.read_sql_query(
                f"SELECT * FROM {TABLE} WHERE user_id = ? ORDER BY created_at DESC, id",
                self._get_connection(),
                params=[user_id],
            )
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            raise LocalStoreError(f"Local query failed: {e}", operation="to_dataframe") from e

        for column in ("created_at", "updated_at"):
            df[column] = pd.to_datetime(df[column], utc=True, format="ISO8601")
        for column in ("is_completed", "synced"):
            df[column] = df[column].astype(bool)
        return df

    # =========================================================================
    # OBSERVATION
    # =========================================================================

    def register_callback(self, callback: Callable[[StoreChange], None]) -> None:
        """
        Register a callback invoked after every committed change.

        Args:
            callback: Function called with a StoreChange
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[StoreChange], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self, change: StoreChange) -> None:
        """Notify all registered callbacks of a committed change."""
        for callback in list(self._callbacks):
            try:
                callback(change)
            except Exception as e:
                logger.error(f"Error in store callback: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Store information for UI display."""
        return {
            "db_path": str(self.db_path),
            "schema_version": self.schema_version,
            "unsynced": self.count_unsynced(),
        }

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local = threading.local()
