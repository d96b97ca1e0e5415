"""
Per-key write serialization for check-then-write sequences.
"""

import asyncio
import weakref
from typing import Hashable, Tuple


class KeyedLocks:
    """
    Hands out one asyncio.Lock per key, typically ``(provider_id, kind)``.

    Two writes for the same provider and kind never interleave their
    read-check-write steps; writes for different keys run freely. Locks are
    held weakly: once no writer holds or waits on a key's lock, the entry
    disappears.
    """

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[Hashable, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def get(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def for_provider(self, provider_id: str, kind: str) -> asyncio.Lock:
        return self.get(_key(provider_id, kind))

    def __len__(self) -> int:
        return len(self._locks)


def _key(provider_id: str, kind: str) -> Tuple[str, str]:
    return (provider_id, str(getattr(kind, "value", kind)))
