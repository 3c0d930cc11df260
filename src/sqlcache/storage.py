"""
SQLite storage for cache entries.

One table per cache, one aiosqlite connection per storage object. aiosqlite
runs every statement on a single worker thread, so statements issued by
foreground calls and background sweeps never overlap.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import aiosqlite

from sqlcache.logging import get_logger
from sqlcache.types import CacheEntry

logger = get_logger(__name__)


def quote_identifier(name: str) -> str:
    """Quote an SQL identifier, doubling any embedded double quotes.

    Args:
        name: Raw table or index name, possibly containing quotes.

    Returns:
        The identifier wrapped in double quotes.
    """
    return '"' + name.replace('"', '""') + '"'


class SQLiteStorage:
    """Atomic statements against one cache table.

    Schema:
        key TEXT PRIMARY KEY, value BLOB, expires INT (epoch ms or NULL),
        lastAccess INT (epoch ms), compressed BOOLEAN
    """

    def __init__(self, database: str | Path, table_name: str = "cache") -> None:
        """Initialize storage.

        Args:
            database: SQLite file path or ":memory:".
            table_name: Name of the cache table. Any string is accepted, except
                one equal to another cache table's index name in the same
                file (idx_<table>_key, idx_<table>_expires,
                idx_<table>_lastAccess).
        """
        self.database = str(database)
        self.table_name = table_name
        self._table = quote_identifier(table_name)
        self._db: aiosqlite.Connection | None = None

    @property
    def is_open(self) -> bool:
        return self._db is not None

    def _index(self, column: str) -> str:
        # Indexes and tables share one namespace per database file, so a table
        # literally named idx_<other>_<column> still collides with <other>
        return quote_identifier(f"idx_{self.table_name}_{column}")

    async def init(self) -> None:
        """Open the connection and create the table and indexes.

        DDL runs in a single transaction and is idempotent, so reopening an
        existing file keeps its rows.
        """
        if self._db is not None:
            return

        db = await aiosqlite.connect(self.database)
        try:
            await db.execute("BEGIN")
            await db.execute(f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    key TEXT PRIMARY KEY,
                    value BLOB,
                    expires INT,
                    lastAccess INT,
                    compressed BOOLEAN
                )
            """)
            await db.execute(
                f"CREATE UNIQUE INDEX IF NOT EXISTS {self._index('key')} "
                f"ON {self._table} (key)"
            )
            await db.execute(
                f"CREATE INDEX IF NOT EXISTS {self._index('expires')} "
                f"ON {self._table} (expires)"
            )
            await db.execute(
                f"CREATE INDEX IF NOT EXISTS {self._index('lastAccess')} "
                f"ON {self._table} (lastAccess)"
            )
            await db.commit()
        except BaseException:
            await db.close()
            raise

        self._db = db
        logger.debug("Storage initialized", database=self.database, table=self.table_name)

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("SQLiteStorage not initialized. Call init() first.")
        return self._db

    async def _write(self, sql: str, params: tuple[Any, ...] = ()) -> int:
        """Execute and commit one write statement, returning affected rows."""
        db = self._conn()
        async with db.execute(sql, params) as cursor:
            rowcount = max(cursor.rowcount, 0)
        await db.commit()
        return rowcount

    async def touch_and_fetch(self, key: str, now: int) -> tuple[bytes, bool] | None:
        """Fetch a live entry and bump its lastAccess in one statement.

        Args:
            key: Entry key.
            now: Current time in epoch ms.

        Returns:
            Tuple of (stored bytes, compressed flag), or None if the key is
            absent or expired.
        """
        db = self._conn()
        async with db.execute(
            f"""
            UPDATE OR IGNORE {self._table}
            SET lastAccess = ?
            WHERE key = ? AND (expires > ? OR expires IS NULL)
            RETURNING value, compressed
            """,
            (now, key, now),
        ) as cursor:
            rows = await cursor.fetchall()
        await db.commit()

        if not rows:
            return None
        value, compressed = rows[0]
        return bytes(value), bool(compressed)

    async def upsert(
        self,
        key: str,
        value: bytes,
        expires: int | None,
        now: int,
        compressed: bool,
    ) -> None:
        """Insert or fully replace an entry."""
        await self._write(
            f"""
            INSERT OR REPLACE INTO {self._table}
            (key, value, expires, lastAccess, compressed) VALUES (?, ?, ?, ?, ?)
            """,
            (key, value, expires, now, 1 if compressed else 0),
        )

    async def delete(self, key: str) -> int:
        """Remove an entry by key."""
        return await self._write(f"DELETE FROM {self._table} WHERE key = ?", (key,))

    async def clear(self) -> int:
        """Remove every entry in the table."""
        return await self._write(f"DELETE FROM {self._table}")

    async def cleanup_expired(self, now: int) -> int:
        """Delete entries whose expiry is strictly before ``now``."""
        return await self._write(
            f"DELETE FROM {self._table} WHERE expires < ?", (now,)
        )

    async def cleanup_lru(self, max_items: int) -> int:
        """Keep the ``max_items`` most recently accessed entries, delete the rest."""
        return await self._write(
            f"""
            DELETE FROM {self._table} WHERE key IN (
                SELECT key FROM {self._table}
                ORDER BY lastAccess DESC LIMIT -1 OFFSET ?
            )
            """,
            (max_items,),
        )

    async def exists(self, key: str, now: int) -> bool:
        """Check for a live entry without touching it."""
        async with self._conn().execute(
            f"""
            SELECT 1 FROM {self._table}
            WHERE key = ? AND (expires > ? OR expires IS NULL)
            """,
            (key, now),
        ) as cursor:
            row = await cursor.fetchone()
        return row is not None

    async def count(self) -> int:
        """Get the number of stored rows, expired ones included."""
        async with self._conn().execute(f"SELECT COUNT(*) FROM {self._table}") as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0

    async def peek(self, key: str) -> CacheEntry | None:
        """Read a raw row without touching lastAccess or checking expiry."""
        async with self._conn().execute(
            f"""
            SELECT key, value, expires, lastAccess, compressed
            FROM {self._table} WHERE key = ?
            """,
            (key,),
        ) as cursor:
            row = await cursor.fetchone()

        if not row:
            return None
        return CacheEntry(
            key=row[0],
            value=bytes(row[1]),
            expires_at=row[2],
            last_access=row[3],
            compressed=bool(row[4]),
        )
