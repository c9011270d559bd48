"""SQLite cache storage.

Read failures are logged and degrade to a cache miss. Write failures raise
``CacheStorageError``; CachedFetcher logs them and still returns the fetched
response, so a broken cache database never fails a fetch.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from linkdeco.errors import CacheStorageError
from linkdeco.models.cache import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Callable

log = structlog.get_logger()

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS fetch_cache (
    key        TEXT PRIMARY KEY,
    payload    TEXT NOT NULL,
    created_at REAL NOT NULL,
    ttl        REAL
)
"""


class SqliteCacheStorage:
    """aiosqlite-backed cache implementing CacheStorageProtocol."""

    def __init__(self, db: aiosqlite.Connection, clock: Callable[[], float] = time.time) -> None:
        self._db = db
        self._clock = clock
        self._lock = asyncio.Lock()

    async def init_db(self) -> None:
        """Create the table and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_TABLE)
        await self._db.commit()

    async def get(self, key: str) -> str | None:
        try:
            cursor = await self._db.execute(
                "SELECT payload, created_at, ttl FROM fetch_cache WHERE key = ?",
                (key,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("cache_read_error", key=key, exc_info=True)
            return None
        if row is None:
            return None

        entry = CacheEntry(payload=row[0], created_at=row[1], ttl=row[2])
        if not entry.is_expired(self._clock()):
            return entry.payload

        async with self._lock:
            try:
                # Conditional delete re-checks expiry against the stored row,
                # so a fresh entry written meanwhile survives.
                await self._db.execute(
                    "DELETE FROM fetch_cache WHERE key = ? AND ttl IS NOT NULL "
                    "AND (ttl = 0 OR ? > created_at + ttl)",
                    (key, self._clock()),
                )
                await self._db.commit()
            except aiosqlite.Error:
                log.warning("cache_evict_error", key=key, exc_info=True)
        return None

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        created_at = self._clock()
        async with self._lock:
            try:
                await self._db.execute(
                    "INSERT OR REPLACE INTO fetch_cache (key, payload, created_at, ttl) "
                    "VALUES (?, ?, ?, ?)",
                    (key, value, created_at, ttl),
                )
                await self._db.commit()
            except aiosqlite.Error as exc:
                raise CacheStorageError(f"Failed to write cache entry: {exc}") from exc

    async def delete(self, key: str) -> None:
        async with self._lock:
            try:
                await self._db.execute("DELETE FROM fetch_cache WHERE key = ?", (key,))
                await self._db.commit()
            except aiosqlite.Error as exc:
                raise CacheStorageError(f"Failed to delete cache entry: {exc}") from exc

    async def clear(self) -> None:
        async with self._lock:
            try:
                await self._db.execute("DELETE FROM fetch_cache")
                await self._db.commit()
            except aiosqlite.Error as exc:
                raise CacheStorageError(f"Failed to clear cache: {exc}") from exc

    async def size(self) -> int:
        async with self._lock:
            try:
                await self._db.execute(
                    "DELETE FROM fetch_cache WHERE ttl IS NOT NULL "
                    "AND (ttl = 0 OR ? > created_at + ttl)",
                    (self._clock(),),
                )
                await self._db.commit()
                cursor = await self._db.execute("SELECT COUNT(*) FROM fetch_cache")
                row = await cursor.fetchone()
            except aiosqlite.Error:
                log.warning("cache_size_error", exc_info=True)
                return 0
        return row[0] if row else 0
