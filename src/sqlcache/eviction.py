"""
Eviction engine.

A sweep runs two passes back to back:
- TTL: delete every row whose expiry is strictly in the past
- LRU: if a capacity bound is set, keep the rows with the most recent
  lastAccess up to the bound and delete the rest of the table
"""

from __future__ import annotations

from typing import Callable

from sqlcache.logging import get_logger, log_context
from sqlcache.storage import SQLiteStorage
from sqlcache.types import SweepResult, now_ms

logger = get_logger(__name__)


class EvictionEngine:
    """Issues sweep statements against one storage table."""

    def __init__(
        self,
        storage: SQLiteStorage,
        max_items: int | None = None,
        is_closed: Callable[[], bool] = lambda: False,
    ) -> None:
        """Initialize the engine.

        Args:
            storage: Initialized storage for the cache table.
            max_items: Capacity bound, or None for no LRU pass.
            is_closed: Callback reporting whether the owning cache is closed.
        """
        self.storage = storage
        self.max_items = max_items
        self._is_closed = is_closed

    async def sweep(self) -> SweepResult:
        """Run the TTL pass then the LRU pass.

        Returns:
            Counts of expired and evicted rows. Empty if the cache is closed.

        Raises:
            Storage errors, unchanged.
        """
        if self._is_closed():
            return SweepResult()

        expired = await self.storage.cleanup_expired(now_ms())

        evicted = 0
        if self.max_items is not None and not self._is_closed():
            evicted = await self.storage.cleanup_lru(self.max_items)

        result = SweepResult(expired=expired, evicted=evicted)
        if result.total:
            logger.debug("Sweep removed entries", expired=expired, evicted=evicted)
        return result

    async def run_safely(self) -> SweepResult | None:
        """Run a sweep from the background path.

        Failures are logged and swallowed so they never reach foreground
        calls or stop the scheduler.

        Returns:
            The sweep result, or None if the sweep failed.
        """
        with log_context(table=self.storage.table_name, operation="sweep"):
            try:
                return await self.sweep()
            except Exception:
                logger.exception("Error when checking for expired cache items")
                return None
