"""Integration test fixtures.

Provides a fully wired AppState built by ``server.build_state`` over an
in-memory cache and an httpx client that respx can intercept.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import httpx
import pytest

from linkdeco.config import FetcherSettings, OEmbedSettings, Settings
from linkdeco.server import build_state

if TYPE_CHECKING:
    from pathlib import Path

    from linkdeco.cache import MemoryCacheStorage
    from linkdeco.models.oembed import OEmbedProvider
    from linkdeco.state import AppState


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env dict for subprocess-based MCP integration tests.

    Points the cache at an isolated SQLite file so a local linkdeco.yaml or
    an existing user cache cannot leak into the run.
    """
    env = os.environ.copy()
    env["LINKDECO__CACHE__BACKEND"] = "sqlite"
    env["LINKDECO__CACHE__DB_PATH"] = str(tmp_path / "cache.db")
    env["LINKDECO__FETCHER__USER_AGENT"] = "linkdeco-test/1.0"
    env["LINKDECO__FETCHER__TIMEOUT_SECONDS"] = "2"
    env["LINKDECO__LOGGING__LEVEL"] = "ERROR"
    return env


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        fetcher=FetcherSettings(user_agent="linkdeco-test/1.0", timeout_seconds=5.0),
        oembed=OEmbedSettings(resolve_redirects=False),
    )


@pytest.fixture()
async def app_state(
    settings: Settings,
    memory_storage: MemoryCacheStorage,
    sample_providers: list[OEmbedProvider],
) -> AppState:
    """Full AppState wired the way the server lifespan wires it."""
    async with httpx.AsyncClient() as client:
        yield build_state(settings, client, memory_storage, sample_providers)
