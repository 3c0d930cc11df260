"""
Sweep scheduler.

Two triggers feed one action: a periodic timer and explicit request() calls
(one per successful write). Requests are coalesced with a leading-edge
window: the first request in a quiet period runs the action right away and
opens a window; requests that arrive while the window is open are dropped.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from sqlcache.logging import get_logger

logger = get_logger(__name__)


class SweepScheduler:
    """Per-instance timer and coalescing state for background sweeps."""

    def __init__(
        self,
        action: Callable[[], Awaitable[Any]],
        interval_ms: int = 1000,
        debounce_ms: int = 100,
    ) -> None:
        """Initialize the scheduler.

        Args:
            action: Coroutine function to run. Expected not to raise.
            interval_ms: Period of the background timer.
            debounce_ms: Length of the coalescing window.
        """
        self._action = action
        self._interval = interval_ms / 1000
        self._debounce = debounce_ms / 1000
        self._periodic: asyncio.Task[None] | None = None
        self._window: asyncio.TimerHandle | None = None
        self._running: set[asyncio.Task[Any]] = set()
        self._stopped = False

    @property
    def started(self) -> bool:
        return self._periodic is not None

    @property
    def window_open(self) -> bool:
        return self._window is not None

    def start(self) -> None:
        """Start the periodic timer. Must be called from a running event loop."""
        if self._periodic is not None or self._stopped:
            return
        self._periodic = asyncio.get_running_loop().create_task(self._tick())

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self.request()

    def request(self) -> bool:
        """Ask for a sweep.

        Returns:
            True if the action was started, False if the request was
            coalesced into an open window or the scheduler is stopped.
        """
        if self._stopped or self._window is not None:
            return False

        loop = asyncio.get_running_loop()
        if self._debounce > 0:
            self._window = loop.call_later(self._debounce, self._close_window)

        task = loop.create_task(self._action())
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        return True

    def _close_window(self) -> None:
        self._window = None

    async def stop(self) -> None:
        """Cancel the timer and the coalescing window.

        An action that already started is allowed to finish; this returns
        once it has.
        """
        self._stopped = True

        if self._window is not None:
            self._window.cancel()
            self._window = None

        if self._periodic is not None:
            self._periodic.cancel()
            try:
                await self._periodic
            except asyncio.CancelledError:
                pass
            self._periodic = None

        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
        logger.debug("Sweep scheduler stopped")
