"""
SQLite-backed key-value store for Ritual.

This module persists every key in a single SQLite table. It is the durable
backend used outside of tests.

Invariants:
    - One SQLite file per process configuration
    - Each operation runs on its own connection
    - Writes are single-statement, so each key update is atomic on its own

How to change safely:
    - Schema migrations must be backward compatible
    - Keep value_json as plain JSON text so the file can be inspected by hand

Table schema:
    kv:
        - key TEXT PRIMARY KEY
        - value_json TEXT
        - updated_at INTEGER (Unix ms)
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .base import StoreConnectionError, StoreError, decode_value, encode_value

logger = logging.getLogger(__name__)


class SqliteKeyValueStore:
    """Key-value store persisted in a SQLite file.

    Thread safety:
        Each operation opens its own connection.
        SQLite handles concurrent access via WAL mode; writes are
        additionally serialized with an asyncio lock.

    Example:
        >>> store = SqliteKeyValueStore("/var/lib/ritual")
        >>> await store.connect()
        >>> await store.put("user:42", {"id": "42", "name": "Ann"})
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        db_file: str = "ritual.db",
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory for the SQLite database file
            db_file: Database file name
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_file
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection to the database file.

        Raises:
            StoreConnectionError: If the store has not been connected
        """
        if not self._connected:
            raise StoreConnectionError("Not connected")

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit; every write is one statement
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        except sqlite3.Error as e:
            raise StoreError(f"SQLite operation failed: {e}") from e
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value_json TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            );
        """)
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
            (self.SCHEMA_VERSION, int(time.time() * 1000)),
        )

    async def connect(self) -> None:
        """Create the data directory and schema if they don't exist.

        Raises:
            StoreConnectionError: If the database file cannot be opened
        """
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreConnectionError(f"Cannot create data directory {self.data_dir}: {e}")

        self._connected = True
        try:
            async with self._lock:
                with self._get_connection() as conn:
                    self._create_schema(conn)
        except StoreError as e:
            self._connected = False
            raise StoreConnectionError(f"Cannot open {self.db_path}: {e}") from e

        logger.info("SQLite key-value store ready", extra={"db_path": str(self.db_path)})

    async def close(self) -> None:
        self._connected = False
        logger.debug("SqliteKeyValueStore closed")

    async def get(self, key: str) -> Any | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT value_json FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return decode_value(key, row["value_json"])

    async def put(self, key: str, value: Any) -> None:
        encoded = encode_value(key, value)
        async with self._lock:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO kv (key, value_json, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value_json = excluded.value_json,
                        updated_at = excluded.updated_at
                    """,
                    (key, encoded, int(time.time() * 1000)),
                )

    async def delete(self, key: str) -> bool:
        async with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                return cursor.rowcount > 0

    async def keys(self, prefix: str = "") -> list[str]:
        # LIKE is case-insensitive in SQLite; compare the prefix exactly
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [row["key"] for row in rows]
