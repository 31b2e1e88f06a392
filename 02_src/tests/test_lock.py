"""Tests for UserLock."""

import asyncio

import pytest

from relay.errors import LockError
from relay.state import UserLock


class TestUserLockSerialization:
    """Tests for per-key mutual exclusion."""

    async def test_same_key_runs_one_at_a_time(self):
        """Test that two operations on the same key never overlap."""
        lock = UserLock()
        events = []

        async def operation(name):
            events.append(f"start {name}")
            await asyncio.sleep(0.01)
            events.append(f"end {name}")
            return name

        results = await asyncio.gather(
            lock.run("5511999999999", operation, "a"),
            lock.run("5511999999999", operation, "b"),
        )

        assert results == ["a", "b"]
        assert events == ["start a", "end a", "start b", "end b"]

    async def test_different_keys_run_concurrently(self):
        """Test that different users never block each other."""
        lock = UserLock()
        events = []

        async def operation(name):
            events.append(f"start {name}")
            await asyncio.sleep(0.01)
            events.append(f"end {name}")

        await asyncio.gather(
            lock.run("5511111111111", operation, "a"),
            lock.run("5522222222222", operation, "b"),
        )

        assert events[:2] == ["start a", "start b"]

    async def test_waiters_follow_arrival_order(self):
        """Test that queued operations run in the order they arrived."""
        lock = UserLock()
        order = []

        async def operation(name):
            await asyncio.sleep(0)
            order.append(name)

        await asyncio.gather(*(lock.run("k", operation, i) for i in range(5)))

        assert order == [0, 1, 2, 3, 4]


class TestUserLockRelease:
    """Tests for release on every exit path."""

    async def test_error_propagates_and_releases(self):
        """Test that an operation error propagates after the lock is released."""
        lock = UserLock()

        async def failing():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await lock.run("k", failing)

        assert not lock.is_held("k")
        assert lock.active_count() == 0

        async def ok():
            return "done"

        assert await lock.run("k", ok) == "done"

    async def test_idle_keys_are_discarded(self):
        """Test that no lock entry remains once holders and waiters are gone."""
        lock = UserLock()

        async def operation():
            assert lock.is_held("k")
            assert lock.active_count() == 1

        await asyncio.gather(*(lock.run("k", operation) for _ in range(3)))

        assert lock.active_count() == 0

    async def test_nested_acquisition_raises(self):
        """Test that re-entering a key held by the same task fails fast."""
        lock = UserLock()

        async with lock.hold("k"):
            with pytest.raises(LockError):
                async with lock.hold("k"):
                    pass
            assert lock.is_held("k")

        assert lock.active_count() == 0
