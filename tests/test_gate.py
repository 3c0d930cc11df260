"""
Tests for the one-shot initialization gate.
"""

from __future__ import annotations

import asyncio

import pytest

from sqlcache.gate import InitGate, InitState


class TestInitGate:
    """Initializer runs once and every waiter shares the outcome."""

    @pytest.mark.asyncio
    async def test_runs_once_for_concurrent_waiters(self) -> None:
        calls = 0

        async def initializer() -> None:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)

        gate = InitGate(initializer)
        assert gate.state is InitState.UNINITIALIZED

        await asyncio.gather(*(gate.wait() for _ in range(10)))
        await gate.wait()

        assert calls == 1
        assert gate.state is InitState.READY

    @pytest.mark.asyncio
    async def test_in_progress_state(self) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def initializer() -> None:
            started.set()
            await release.wait()

        gate = InitGate(initializer)
        waiter = asyncio.create_task(gate.wait())
        await started.wait()
        assert gate.state is InitState.IN_PROGRESS

        release.set()
        await waiter
        assert gate.state is InitState.READY

    @pytest.mark.asyncio
    async def test_failure_is_shared_and_sticky(self) -> None:
        calls = 0
        error = ValueError("boom")

        async def initializer() -> None:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            raise error

        gate = InitGate(initializer)
        results = await asyncio.gather(
            gate.wait(), gate.wait(), gate.wait(), return_exceptions=True
        )

        assert all(result is error for result in results)
        with pytest.raises(ValueError) as exc_info:
            await gate.wait()
        assert exc_info.value is error
        assert calls == 1
        assert gate.state is InitState.FAILED
        assert gate.error is error

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_initializer(self) -> None:
        release = asyncio.Event()

        async def initializer() -> None:
            await release.wait()

        gate = InitGate(initializer)
        first = asyncio.create_task(gate.wait())
        await asyncio.sleep(0)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        release.set()
        await gate.wait()
        assert gate.state is InitState.READY
