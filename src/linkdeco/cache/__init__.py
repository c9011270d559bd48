"""Cache storage backends and the fetch cache key."""

from __future__ import annotations

import hashlib
import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from linkdeco.cache.filesystem import FileSystemCacheStorage
from linkdeco.cache.memory import MemoryCacheStorage
from linkdeco.cache.sqlite import SqliteCacheStorage

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from linkdeco.config import CacheSettings
    from linkdeco.protocols import CacheStorageProtocol

log = structlog.get_logger()

__all__ = [
    "FileSystemCacheStorage",
    "MemoryCacheStorage",
    "SqliteCacheStorage",
    "generate_cache_key",
    "open_cache_storage",
]


def generate_cache_key(url: str, accept: str, user_agent: str | None = None) -> str:
    """Return the cache key for one fetch.

    The triple is JSON-encoded before hashing so that no two distinct triples
    can collide by shifting a separator between fields.
    """
    material = json.dumps([url, accept, user_agent or "default"], ensure_ascii=False)
    return "fetch:" + hashlib.sha256(material.encode("utf-8")).hexdigest()


@asynccontextmanager
async def open_cache_storage(
    settings: CacheSettings,
) -> AsyncGenerator[CacheStorageProtocol | None, None]:
    """Build the configured backend; yields None when caching is disabled."""
    if not settings.enabled:
        yield None
        return

    if settings.backend == "memory":
        yield MemoryCacheStorage()
        return

    if settings.backend == "filesystem":
        yield FileSystemCacheStorage(settings.dir, compression=settings.compression)
        return

    db_path = Path(settings.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    async with aiosqlite.connect(str(db_path)) as db:
        storage = SqliteCacheStorage(db)
        await storage.init_db()
        log.info("cache_storage_opened", backend="sqlite", path=str(db_path))
        yield storage
