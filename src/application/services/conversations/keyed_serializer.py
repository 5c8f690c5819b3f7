"""Per-key serialization of coroutines.

Work submitted under the same key runs one at a time, in submission order;
work under different keys runs concurrently. A key's lock is dropped once
nothing is running or waiting on it, so the table only holds active keys.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class KeyedSerializer:
    """Maps a key to a single FIFO lane."""

    def __init__(self) -> None:
        self._locks: dict[str, _KeyLock] = {}
        self._locks_lock = asyncio.Lock()  # Lock for accessing _locks

    async def _acquire_entry(self, key: str) -> _KeyLock:
        async with self._locks_lock:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._locks[key] = entry
            entry.users += 1
            return entry

    async def _release_entry(self, key: str, entry: _KeyLock) -> None:
        async with self._locks_lock:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    async def run(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        """Run ``work()`` once every earlier submission for ``key`` has finished."""
        entry = await self._acquire_entry(key)
        try:
            async with entry.lock:
                return await work()
        finally:
            await self._release_entry(key, entry)

    def is_busy(self, key: str) -> bool:
        entry = self._locks.get(key)
        return entry is not None and entry.lock.locked()

    @property
    def active_keys(self) -> int:
        return len(self._locks)
