"""Per-user serialization lock.

Messages from the same user are processed one at a time so that session
state updates never interleave. Different users never block each other.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Protocol, TypeVar

from ..errors import LockError
from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class IUserLock(Protocol):
    """Mutual exclusion keyed by user identity."""

    def hold(self, key: str) -> Any:
        """Async context manager holding the lock for ``key``."""
        ...

    async def run(
        self, key: str, operation: Callable[..., Awaitable[T]], *args, **kwargs
    ) -> T:
        """Run ``operation`` while holding the lock for ``key``."""
        ...

    def active_count(self) -> int:
        """Number of keys with a holder or waiters."""
        ...


class UserLock:
    """One asyncio.Lock per key, created on demand and dropped when idle."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._refs: dict[str, int] = {}  # holders + waiters per key
        self._holders: dict[str, asyncio.Task | None] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for ``key``; waits while another operation holds it."""
        task = asyncio.current_task()
        if key in self._holders and self._holders[key] is task:
            raise LockError(f"Lock for {key} is already held by the current task")

        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._refs[key] = self._refs.get(key, 0) + 1

        try:
            if lock.locked():
                logger.debug("Waiting for user lock %s", key)
            async with lock:
                self._holders[key] = task
                try:
                    yield
                finally:
                    del self._holders[key]
        finally:
            self._refs[key] -= 1
            if self._refs[key] == 0:
                del self._refs[key]
                del self._locks[key]

    async def run(
        self, key: str, operation: Callable[..., Awaitable[T]], *args, **kwargs
    ) -> T:
        """Run ``operation`` while holding the lock for ``key``.

        Errors raised by the operation propagate after the lock is released.
        """
        async with self.hold(key):
            return await operation(*args, **kwargs)

    def is_held(self, key: str) -> bool:
        return key in self._holders

    def active_count(self) -> int:
        return len(self._locks)
