import asyncio
import weakref
from typing import Hashable


class KeyedLocks:
    """
    One asyncio.Lock per key, created on first use.

    Only weak references are kept: a lock lives as long as someone holds or
    waits on it, so keys of deleted queues or unknown handles do not pile up.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[Hashable, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def __call__(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __contains__(self, key: Hashable) -> bool:
        return key in self._locks

    def __len__(self) -> int:
        return len(self._locks)
