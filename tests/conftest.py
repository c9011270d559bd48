"""Shared test fixtures for the linkdeco test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import pytest

from linkdeco.cache import FileSystemCacheStorage, MemoryCacheStorage, SqliteCacheStorage
from linkdeco.models.oembed import OEmbedEndpoint, OEmbedProvider

if TYPE_CHECKING:
    from pathlib import Path


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


ARTICLE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <title>Fallback Title</title>
  <meta property="og:title" content="Example Article">
  <meta property="og:description" content="An example article about caching.">
  <meta property="og:image" content="/images/cover.png">
  <meta name="twitter:site" content="@example">
  <link rel="icon" href="/favicon.ico">
</head>
<body><h1>Example Article</h1></body>
</html>"""

PLAIN_HTML = """<html><head><title>Hello</title>
<meta name="description" content="Plain page"></head><body></body></html>"""


@pytest.fixture()
def article_html() -> str:
    return ARTICLE_HTML


@pytest.fixture()
def plain_html() -> str:
    return PLAIN_HTML


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def memory_storage(clock: FakeClock) -> MemoryCacheStorage:
    return MemoryCacheStorage(clock=clock)


@pytest.fixture()
async def sqlite_storage(clock: FakeClock) -> SqliteCacheStorage:
    async with aiosqlite.connect(":memory:") as db:
        storage = SqliteCacheStorage(db, clock=clock)
        await storage.init_db()
        yield storage


@pytest.fixture()
def fs_storage(tmp_path: Path, clock: FakeClock) -> FileSystemCacheStorage:
    return FileSystemCacheStorage(tmp_path / "cache", clock=clock)


@pytest.fixture()
def sample_providers() -> list[OEmbedProvider]:
    """YouTube matched by scheme; Vimeo with a {format} endpoint and a discovery-only one."""
    return [
        OEmbedProvider(
            provider_name="YouTube",
            provider_url="https://www.youtube.com/",
            endpoints=[
                OEmbedEndpoint(
                    url="https://www.youtube.com/oembed",
                    schemes=["https://*.youtube.com/watch*", "https://youtu.be/*"],
                    discovery=True,
                )
            ],
        ),
        OEmbedProvider(
            provider_name="Vimeo",
            provider_url="https://vimeo.com/",
            endpoints=[
                OEmbedEndpoint(
                    url="https://vimeo.com/api/oembed.{format}",
                    schemes=["https://vimeo.com/*"],
                ),
                OEmbedEndpoint(url="https://vimeo.com/api/discovery-only"),
            ],
        ),
    ]
