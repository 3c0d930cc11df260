"""
Tests for the eviction engine.
"""

from __future__ import annotations

import sqlite3
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest

from sqlcache.eviction import EvictionEngine
from sqlcache.storage import SQLiteStorage
from sqlcache.types import SweepResult, now_ms


@pytest.fixture
async def storage() -> AsyncGenerator[SQLiteStorage, None]:
    """Create an initialized in-memory storage."""
    store = SQLiteStorage(":memory:")
    await store.init()
    yield store
    await store.close()


class TestSweep:
    """TTL and LRU passes."""

    @pytest.mark.asyncio
    async def test_ttl_pass(self, storage: SQLiteStorage) -> None:
        now = now_ms()
        await storage.upsert("expired", b"v", now - 1000, now, False)
        await storage.upsert("live", b"v", now + 60_000, now, False)
        await storage.upsert("forever", b"v", None, now, False)

        result = await EvictionEngine(storage).sweep()

        assert result == SweepResult(expired=1, evicted=0)
        assert await storage.peek("expired") is None
        assert await storage.count() == 2

    @pytest.mark.asyncio
    async def test_lru_pass_covers_whole_table(self, storage: SQLiteStorage) -> None:
        for i in range(6):
            await storage.upsert(f"k{i}", b"v", None, 1000 + i, False)
        # An old write that was read recently survives
        await storage.touch_and_fetch("k0", 5000)

        result = await EvictionEngine(storage, max_items=3).sweep()

        assert result.evicted == 3
        remaining = {key for key in ("k0", "k1", "k2", "k3", "k4", "k5")
                     if await storage.peek(key) is not None}
        assert remaining == {"k0", "k4", "k5"}

    @pytest.mark.asyncio
    async def test_no_lru_without_bound(self, storage: SQLiteStorage) -> None:
        for i in range(10):
            await storage.upsert(f"k{i}", b"v", None, i, False)

        result = await EvictionEngine(storage).sweep()

        assert result.total == 0
        assert await storage.count() == 10

    @pytest.mark.asyncio
    async def test_ttl_runs_before_lru(self, storage: SQLiteStorage) -> None:
        now = now_ms()
        await storage.upsert("newest_but_expired", b"v", now - 1, now + 100, False)
        await storage.upsert("a", b"v", None, now - 20, False)
        await storage.upsert("b", b"v", None, now - 10, False)

        result = await EvictionEngine(storage, max_items=2).sweep()

        assert result == SweepResult(expired=1, evicted=0)
        assert await storage.peek("a") is not None
        assert await storage.peek("b") is not None

    @pytest.mark.asyncio
    async def test_skipped_when_closed(self, storage: SQLiteStorage) -> None:
        await storage.upsert("expired", b"v", 1, 1, False)

        result = await EvictionEngine(storage, max_items=1, is_closed=lambda: True).sweep()

        assert result == SweepResult()
        assert await storage.count() == 1


class TestRunSafely:
    """Background failures are contained."""

    @pytest.mark.asyncio
    async def test_storage_error_is_swallowed(self, storage: SQLiteStorage) -> None:
        storage.cleanup_expired = AsyncMock(  # type: ignore[method-assign]
            side_effect=sqlite3.OperationalError("database is locked")
        )

        assert await EvictionEngine(storage).run_safely() is None

    @pytest.mark.asyncio
    async def test_uninitialized_storage_is_swallowed(self) -> None:
        engine = EvictionEngine(SQLiteStorage(":memory:"))
        assert await engine.run_safely() is None

    @pytest.mark.asyncio
    async def test_success_returns_result(self, storage: SQLiteStorage) -> None:
        await storage.upsert("expired", b"v", 1, 1, False)
        result = await EvictionEngine(storage).run_safely()
        assert result == SweepResult(expired=1, evicted=0)
