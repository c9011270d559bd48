"""File-per-entry cache storage.

Each entry is a JSON document named after the SHA-256 of its key, stored as
``<hash>.json.gz`` when compression is on and ``<hash>.json`` otherwise.
Writing one form removes the other, so a key never has two live files.

Blocking file I/O runs in worker threads via ``asyncio.to_thread``. Entries are
written to a temporary file in the cache directory and moved into place with
``os.replace``, so readers see either the old document or the new one. Unreadable
or unparsable files are treated as misses and deleted once a re-read under the
lock confirms they are still broken.
"""

from __future__ import annotations

import asyncio
import gzip
import hashlib
import os
import tempfile
import time
from contextlib import suppress
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from linkdeco.errors import CacheStorageError
from linkdeco.models.cache import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Callable

log = structlog.get_logger()

_PLAIN_SUFFIX = ".json"
_COMPRESSED_SUFFIX = ".json.gz"
_TEMP_SUFFIX = ".tmp"


def _file_base_name(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def _unlink_quietly(path: Path) -> None:
    with suppress(FileNotFoundError):
        path.unlink()


def _read_entry(path: Path) -> CacheEntry:
    raw = path.read_bytes()
    if path.name.endswith(_COMPRESSED_SUFFIX):
        raw = gzip.decompress(raw)
    return CacheEntry.model_validate_json(raw)


def _is_cache_file(path: Path) -> bool:
    return path.name.endswith(_PLAIN_SUFFIX) or path.name.endswith(_COMPRESSED_SUFFIX)


class FileSystemCacheStorage:
    """Directory-backed cache implementing CacheStorageProtocol."""

    def __init__(
        self,
        cache_dir: str | Path,
        *,
        compression: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dir = Path(cache_dir).expanduser()
        self._compression = compression
        self._clock = clock
        self._lock = asyncio.Lock()

    def _paths(self, key: str) -> tuple[Path, Path]:
        base = _file_base_name(key)
        return self._dir / f"{base}{_PLAIN_SUFFIX}", self._dir / f"{base}{_COMPRESSED_SUFFIX}"

    def _ensure_dir(self) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheStorageError(f"Failed to create cache directory {self._dir}: {exc}") from exc

    def _load(self, key: str) -> tuple[CacheEntry | None, Path] | None:
        """Return ``(entry, path)``, ``(None, path)`` for a corrupt file, or None."""
        plain, compressed = self._paths(key)
        candidates = [compressed, plain] if self._compression else [plain]
        for path in candidates:
            try:
                return _read_entry(path), path
            except FileNotFoundError:
                continue
            except (OSError, EOFError, ValueError, ValidationError):
                # gzip.BadGzipFile is an OSError; bad JSON raises ValidationError
                return None, path
        return None

    async def get(self, key: str) -> str | None:
        loaded = await asyncio.to_thread(self._load, key)
        if loaded is None:
            return None
        entry, path = loaded
        if entry is not None and not entry.is_expired(self._clock()):
            return entry.payload

        async with self._lock:
            return await asyncio.to_thread(self._recheck, key, path)

    def _recheck(self, key: str, path: Path) -> str | None:
        # Runs under the lock: a set() that finished in the meantime wins.
        try:
            current = _read_entry(path)
        except FileNotFoundError:
            return None
        except (OSError, EOFError, ValueError, ValidationError):
            log.warning("cache_entry_corrupted", path=str(path))
            _unlink_quietly(path)
            return None
        if current.is_expired(self._clock()):
            for other in self._paths(key):
                _unlink_quietly(other)
            return None
        return current.payload

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        entry = CacheEntry(payload=value, created_at=self._clock(), ttl=ttl)
        serialized = entry.model_dump_json(indent=2).encode("utf-8")
        payload = gzip.compress(serialized) if self._compression else serialized
        async with self._lock:
            await asyncio.to_thread(self._write, key, payload)

    def _write(self, key: str, payload: bytes) -> None:
        self._ensure_dir()
        plain, compressed = self._paths(key)
        target, stale = (compressed, plain) if self._compression else (plain, compressed)
        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "wb", dir=str(self._dir), suffix=_TEMP_SUFFIX, delete=False
            ) as handle:
                temp_path = Path(handle.name)
                handle.write(payload)
            os.replace(temp_path, target)
        except OSError as exc:
            if temp_path is not None:
                _unlink_quietly(temp_path)
            raise CacheStorageError(f"Failed to write cache entry {target.name}: {exc}") from exc
        _unlink_quietly(stale)

    async def delete(self, key: str) -> None:
        async with self._lock:
            for path in self._paths(key):
                await asyncio.to_thread(_unlink_quietly, path)

    async def clear(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._clear)

    def _clear(self) -> None:
        if not self._dir.is_dir():
            return
        for path in self._dir.iterdir():
            if _is_cache_file(path):
                _unlink_quietly(path)

    async def size(self) -> int:
        async with self._lock:
            return await asyncio.to_thread(self._count_live)

    def _count_live(self) -> int:
        if not self._dir.is_dir():
            return 0
        now = self._clock()
        live = 0
        for path in self._dir.iterdir():
            if not _is_cache_file(path):
                continue
            try:
                entry = _read_entry(path)
            except FileNotFoundError:
                continue
            except (OSError, EOFError, ValueError, ValidationError):
                _unlink_quietly(path)
                continue
            if entry.is_expired(now):
                _unlink_quietly(path)
                continue
            live += 1
        return live
