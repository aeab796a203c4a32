"""
Tests for the background session sweeper and the keyed lock.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from aigateway.core.keyed_lock import KeyedLock
from aigateway.core.sweeper import SessionSweeper


class TestSessionSweeper:
    """Tests for SessionSweeper."""

    @pytest.mark.asyncio
    async def test_run_once_uses_expiry_hours(self):
        manager = MagicMock()
        manager.expire_sweep = AsyncMock(return_value=3)
        sweeper = SessionSweeper(manager, expiry_hours=12)

        assert await sweeper.run_once() == 3
        manager.expire_sweep.assert_awaited_once_with(12)

    @pytest.mark.asyncio
    async def test_run_once_swallows_errors(self):
        manager = MagicMock()
        manager.expire_sweep = AsyncMock(side_effect=RuntimeError("store down"))
        sweeper = SessionSweeper(manager)

        assert await sweeper.run_once() == 0

    @pytest.mark.asyncio
    async def test_loop_keeps_running_after_failure(self):
        calls = []

        async def sweep(hours):
            calls.append(hours)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return 0

        manager = MagicMock()
        manager.expire_sweep = AsyncMock(side_effect=sweep)
        sweeper = SessionSweeper(manager, interval_seconds=0.01)

        await sweeper.start()
        await asyncio.sleep(0.1)
        await sweeper.stop()

        assert manager.expire_sweep.await_count >= 2
        assert not sweeper.is_running

    @pytest.mark.asyncio
    async def test_disabled_does_not_start(self):
        manager = MagicMock()
        manager.expire_sweep = AsyncMock(return_value=0)
        sweeper = SessionSweeper(manager, enabled=False)

        await sweeper.start()

        assert not sweeper.is_running
        manager.expire_sweep.assert_not_awaited()


class TestKeyedLock:
    """Tests for KeyedLock."""

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        locks = KeyedLock()
        events = []

        async def worker(name):
            async with locks.lock("s1"):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        locks = KeyedLock()
        entered = asyncio.Event()

        async def holder():
            async with locks.lock("s1"):
                await asyncio.wait_for(entered.wait(), timeout=1)

        async def other():
            async with locks.lock("s2"):
                entered.set()

        await asyncio.gather(holder(), other())
        assert not locks.locked("s1")

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = KeyedLock()

        with pytest.raises(ValueError):
            async with locks.lock("s1"):
                raise ValueError("boom")

        assert len(locks) == 0
