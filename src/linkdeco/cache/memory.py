"""In-process cache storage."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from linkdeco.models.cache import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Callable


class MemoryCacheStorage:
    """Dict-backed cache implementing CacheStorageProtocol.

    Reads take no lock. Mutations, including the eviction of an entry found
    expired on read, hold a lock for the single operation only.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_expired(self._clock()):
            return entry.payload

        async with self._lock:
            # Re-check under the lock: another reader may have evicted the key
            # already, or a writer may have replaced it with a fresh entry.
            current = self._entries.get(key)
            if current is None:
                return None
            if current.is_expired(self._clock()):
                del self._entries[key]
                return None
            return current.payload

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        entry = CacheEntry(payload=value, created_at=self._clock(), ttl=ttl)
        async with self._lock:
            self._entries[key] = entry

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    async def size(self) -> int:
        if not self._entries:
            return 0
        async with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(self._entries)
