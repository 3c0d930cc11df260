"""
One-shot initialization gate.

Every cache operation awaits the gate before touching storage. The first
caller starts the initializer; everyone else, including callers that arrive
while it is still running, awaits the same task and sees the same outcome.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable


class InitState(str, Enum):
    """Lifecycle of an InitGate."""

    UNINITIALIZED = "uninitialized"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    FAILED = "failed"


class InitGate:
    """Runs an async initializer exactly once and shares its result.

    A failure is sticky: the stored exception is raised to every current
    and future waiter, and the initializer is never retried.
    """

    def __init__(self, initializer: Callable[[], Awaitable[None]]) -> None:
        self._initializer = initializer
        self._state = InitState.UNINITIALIZED
        self._task: asyncio.Task[None] | None = None
        self._error: BaseException | None = None

    @property
    def state(self) -> InitState:
        return self._state

    @property
    def error(self) -> BaseException | None:
        return self._error

    async def wait(self) -> None:
        """Block until initialization has completed.

        Raises:
            Whatever the initializer raised, for every waiter.
        """
        if self._state is InitState.READY:
            return
        if self._state is InitState.FAILED:
            assert self._error is not None
            raise self._error

        if self._task is None:
            self._state = InitState.IN_PROGRESS
            self._task = asyncio.get_running_loop().create_task(self._run())

        # A cancelled waiter must not cancel the shared initializer
        await asyncio.shield(self._task)

    async def _run(self) -> None:
        try:
            await self._initializer()
        except BaseException as e:
            self._state = InitState.FAILED
            self._error = e
            raise
        self._state = InitState.READY
