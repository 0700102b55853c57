"""Durable key-value store behind a small async interface.

``SqliteStore`` uses aiosqlite for non-blocking access with WAL mode;
``MemoryStore`` keeps everything in a dict and is used in tests and when
no database path is configured.
"""

import os
import time
from abc import ABC, abstractmethod
from typing import Self

import aiosqlite

from tradesignal.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at INTEGER NOT NULL
);
"""


class PersistentStore(ABC):
    """String key to string value store."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value for ``key`` or None."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Create or overwrite ``key``."""
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete ``key``; a missing key is not an error."""
        ...

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """All keys starting with ``prefix``, sorted."""
        ...


class MemoryStore(PersistentStore):
    """Process-local store. Contents vanish on exit."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class SqliteStore(PersistentStore):
    """Async SQLite-backed store.

    Usage:
        # Context manager (recommended)
        async with SqliteStore("data/tradesignal.db") as store:
            await store.set("key", "value")

        # Manual lifecycle
        store = SqliteStore("data/tradesignal.db")
        await store.connect()
        try:
            ...
        finally:
            await store.close()
    """

    def __init__(self, db_path: str = "data/tradesignal.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Store not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open the connection, configure pragmas, and create the schema.

        Creates the parent directory if it does not exist.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")

        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.commit()
        await self._ensure_schema_version()

        logger.info("kv_store_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("kv_store_closed", db_path=self._db_path)

    async def _ensure_schema_version(self) -> None:
        cursor = await self.db.execute("SELECT version FROM schema_version LIMIT 1")
        row = await cursor.fetchone()
        if row is None:
            await self.db.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            await self.db.commit()
            logger.info("schema_version_set", version=SCHEMA_VERSION)

    async def get(self, key: str) -> str | None:
        cursor = await self.db.execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        )
        row = await cursor.fetchone()
        return row[0] if row is not None else None

    async def set(self, key: str, value: str) -> None:
        await self.db.execute(
            "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
            (key, value, int(time.time() * 1000)),
        )
        await self.db.commit()

    async def remove(self, key: str) -> None:
        await self.db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        await self.db.commit()

    async def keys(self, prefix: str = "") -> list[str]:
        # substr comparison instead of LIKE: prefixes may contain % or _
        cursor = await self.db.execute(
            "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
