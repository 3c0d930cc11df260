"""
SQLite-backed key-value cache with TTL, LRU eviction and compression.

SQLiteCache is the public entry point. Storage setup is lazy: the first
operation opens the connection and creates the table, and every concurrent
caller waits for that same initialization. Once ready, a per-instance
scheduler sweeps expired and excess entries in the background.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any

from sqlcache.base import CacheProtocol
from sqlcache.codec import decode, encode
from sqlcache.compression import compress_value, decompress_value, resolve_compression
from sqlcache.config import CacheConfig, get_settings
from sqlcache.eviction import EvictionEngine
from sqlcache.exceptions import CacheClosedError, CacheInitializationError
from sqlcache.gate import InitGate, InitState
from sqlcache.logging import get_logger, log_context
from sqlcache.scheduler import SweepScheduler
from sqlcache.storage import SQLiteStorage
from sqlcache.types import MISSING, CacheEntry, now_ms

logger = get_logger(__name__)


class SQLiteCache(CacheProtocol):
    """Key-value cache stored in one SQLite table.

    Example:
        async with SQLiteCache(database="cache.db", max_items=1000) as cache:
            await cache.set("user:1", {"name": "Ada"}, ttl_ms=60_000)
            user = await cache.get("user:1")

    Values may be None, MISSING, bool, int, float, str, bytes, lists,
    str-keyed dicts, datetimes and dates, nested up to 200 levels deep.
    """

    def __init__(self, config: CacheConfig | None = None, **options: Any) -> None:
        """Initialize the cache. No I/O happens until the first operation.

        Args:
            config: Validated configuration. If omitted, ``options`` are
                validated into a CacheConfig, or the environment is used
                when there are no options either.
            **options: CacheConfig fields (database, max_items, compress, ...).
                Fields not given here are still read from SQLCACHE_* environment
                variables and .env, like any CacheConfig. Pass a field
                explicitly (None included) to ignore the environment for it.

        Raises:
            TypeError: If both a config and keyword options are given.
            ValidationError: If the configuration is invalid.
        """
        if config is not None and options:
            raise TypeError("Pass either a CacheConfig or keyword options, not both")
        if config is None:
            config = CacheConfig(**options) if options else get_settings()

        self.config = config
        self._closed = False
        self._storage = SQLiteStorage(config.database, config.table_name)
        self._engine = EvictionEngine(
            self._storage,
            max_items=config.max_items,
            is_closed=lambda: self._closed,
        )
        self._scheduler = SweepScheduler(
            self._engine.run_safely,
            interval_ms=config.sweep_interval_ms,
            debounce_ms=config.sweep_debounce_ms,
        )
        self._gate = InitGate(self._initialize)

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    @property
    def table_name(self) -> str:
        return self.config.table_name

    async def __aenter__(self) -> SQLiteCache:
        await self._ready("open")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise CacheClosedError(
                "Cache is closed", {"table": self.table_name, "operation": operation}
            )

    async def _initialize(self) -> None:
        with log_context(table=self.table_name, operation="init"):
            try:
                await self._storage.init()
            except Exception as e:
                logger.error(
                    "Cache initialization failed",
                    database=self.config.database,
                    error=str(e),
                )
                raise CacheInitializationError(
                    "Failed to initialize cache storage",
                    {"database": self.config.database, "table": self.table_name},
                ) from e

            if not self._closed:
                self._scheduler.start()

            logger.info(
                "Cache initialized",
                database=self.config.database,
                max_items=self.config.max_items,
                compress=self.config.compress,
            )

    async def _ready(self, operation: str) -> SQLiteStorage:
        """Check the closed flag and wait for initialization."""
        self._check_open(operation)
        await self._gate.wait()
        self._check_open(operation)
        return self._storage

    async def get(self, key: str, default: Any = MISSING) -> Any:
        """Get cache item by its key.

        A hit refreshes the entry's last access time. Expired entries are
        treated as missing even if no sweep has removed them yet.

        Args:
            key: Entry key.
            default: Returned when the key is missing or expired.

        Returns:
            The decoded value, or ``default`` (MISSING unless given).

        Raises:
            CacheClosedError: If the cache is closed.
            CacheDecodeError: If the stored bytes are corrupted.
        """
        storage = await self._ready("get")

        row = await storage.touch_and_fetch(key, now_ms())
        if row is None:
            return default

        value, compressed = row
        return decode(await decompress_value(value, compressed))

    async def set(
        self,
        key: str,
        value: Any,
        *,
        ttl_ms: int | None = None,
        compress: bool | None = None,
    ) -> None:
        """Update cache item by key or create a new one.

        Args:
            key: Entry key.
            value: Value to store.
            ttl_ms: Time-to-live from now in milliseconds. Without it the
                entry never expires; config.default_ttl_ms is not applied.
            compress: Override the configured compression default.

        Raises:
            CacheClosedError: If the cache is closed.
            CacheEncodeError: If the value has an unsupported type.
        """
        self._check_open("set")

        encoded = encode(value)
        stored, compressed = await compress_value(
            encoded, resolve_compression(compress, self.config.compress)
        )

        storage = await self._ready("set")
        now = now_ms()
        expires = now + ttl_ms if ttl_ms is not None else None
        await storage.upsert(key, stored, expires, now, compressed)

        logger.debug(
            "Stored cache entry",
            key=key,
            size=len(stored),
            compressed=compressed,
            expires=expires,
        )
        self._scheduler.request()

    async def delete(self, key: str) -> None:
        """Remove specific item from the cache."""
        storage = await self._ready("delete")
        await storage.delete(key)

    async def clear(self) -> None:
        """Remove all items from the cache."""
        storage = await self._ready("clear")
        removed = await storage.clear()
        logger.debug("Cleared cache", removed=removed, table=self.table_name)

    async def exists(self, key: str) -> bool:
        """Check whether a live entry exists, without refreshing it."""
        storage = await self._ready("exists")
        return await storage.exists(key, now_ms())

    async def size(self) -> int:
        """Number of stored rows, including expired rows not yet swept."""
        storage = await self._ready("size")
        return await storage.count()

    async def peek(self, key: str) -> CacheEntry | None:
        """Get the raw stored row for a key without refreshing it."""
        storage = await self._ready("peek")
        return await storage.peek(key)

    async def close(self) -> None:
        """Close the database and stop background sweeps.

        Marks the cache closed first, so later operations fail fast. An
        initialization or sweep already in flight is allowed to finish
        before the connection is released.
        """
        if self._closed:
            return
        self._closed = True

        if self._gate.state is InitState.IN_PROGRESS:
            try:
                await self._gate.wait()
            except CacheInitializationError:
                # Already raised to the operation that triggered it
                logger.debug("Closing cache after failed initialization")

        await self._scheduler.stop()
        await self._storage.close()
        logger.debug("Cache closed", table=self.table_name)
