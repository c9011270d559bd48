"""Unit tests for linkdeco.fetcher."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import pytest
import respx

from linkdeco.cache import MemoryCacheStorage, generate_cache_key
from linkdeco.cancellation import CancellationToken
from linkdeco.config import Settings
from linkdeco.errors import (
    CacheStorageError,
    ErrorCode,
    FetchCancelledError,
    FetchError,
    FetchTimeoutError,
)
from linkdeco.fetcher import (
    CachedFetcher,
    DirectFetcher,
    build_fetcher,
    build_http_client,
    fetch_data,
    fetch_json,
    fetch_text,
)

if TYPE_CHECKING:
    from conftest import FakeClock


def _slow_client(delay: float) -> httpx.AsyncClient:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(delay)
        return httpx.Response(200, text="late")

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class _BrokenStorage(MemoryCacheStorage):
    async def get(self, key: str) -> str | None:
        raise CacheStorageError("disk on fire")

    async def set(self, key: str, value: str, ttl: float | None = None) -> None:
        raise CacheStorageError("disk on fire")


# ---------------------------------------------------------------------------
# build_http_client
# ---------------------------------------------------------------------------


class TestBuildHttpClient:
    async def test_client_configuration(self) -> None:
        settings = Settings()
        client = build_http_client(settings)
        try:
            assert isinstance(client, httpx.AsyncClient)
            assert client.follow_redirects is True
            assert client.headers["User-Agent"] == settings.fetcher.user_agent
            assert client.timeout.read == settings.fetcher.timeout_seconds
        finally:
            await client.aclose()


# ---------------------------------------------------------------------------
# fetch_data
# ---------------------------------------------------------------------------


class TestFetchData:
    async def test_successful_fetch_sends_headers(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/page").mock(
                return_value=httpx.Response(200, text="<html></html>")
            )
            async with httpx.AsyncClient() as client:
                response = await fetch_data(
                    client, "https://example.com/page", "text/html", "test-agent/1.0", 5.0
                )

        assert response.text == "<html></html>"
        sent = route.calls.last.request
        assert sent.headers["Accept"] == "text/html"
        assert sent.headers["User-Agent"] == "test-agent/1.0"

    @pytest.mark.parametrize("status", [404, 500, 302])
    async def test_non_2xx_raises_with_status(self, status: int) -> None:
        with respx.mock:
            respx.get("https://example.com/x").mock(return_value=httpx.Response(status))
            async with httpx.AsyncClient() as client:
                with pytest.raises(FetchError) as exc_info:
                    await fetch_data(client, "https://example.com/x", "text/html", "ua", 5.0)

        assert exc_info.value.status == status
        assert exc_info.value.message == f"HTTP error, status: {status}"
        assert exc_info.value.code == ErrorCode.FETCH_FAILED

    async def test_network_error_raises_fetch_error(self) -> None:
        with respx.mock:
            respx.get("https://example.com/down").mock(
                side_effect=httpx.ConnectError("Connection refused")
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(FetchError) as exc_info:
                    await fetch_data(client, "https://example.com/down", "text/html", "ua", 5.0)

        assert exc_info.value.status is None
        assert not isinstance(exc_info.value, FetchTimeoutError)

    async def test_httpx_timeout_maps_to_timeout_error(self) -> None:
        with respx.mock:
            respx.get("https://example.com/slow").mock(
                side_effect=httpx.ReadTimeout("timed out")
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(FetchTimeoutError) as exc_info:
                    await fetch_data(client, "https://example.com/slow", "text/html", "ua", 5.0)

        assert exc_info.value.code == ErrorCode.FETCH_TIMEOUT

    async def test_overall_timeout(self) -> None:
        async with _slow_client(5.0) as client:
            with pytest.raises(FetchTimeoutError):
                await fetch_data(client, "https://example.com/slow", "text/html", "ua", 0.05)

    async def test_cancel_aborts_request_in_flight(self) -> None:
        token = CancellationToken()
        async with _slow_client(5.0) as client:
            task = asyncio.create_task(
                fetch_data(client, "https://example.com/slow", "text/html", "ua", 10.0, token)
            )
            await asyncio.sleep(0.01)
            token.cancel()
            with pytest.raises(FetchCancelledError):
                await asyncio.wait_for(task, 1.0)

    async def test_cancelled_token_is_not_a_timeout(self) -> None:
        token = CancellationToken()
        token.cancel()
        async with _slow_client(0.0) as client:
            with pytest.raises(FetchCancelledError) as exc_info:
                await fetch_data(client, "https://example.com/", "text/html", "ua", 5.0, token)

        assert not isinstance(exc_info.value, FetchTimeoutError)
        assert exc_info.value.code == ErrorCode.FETCH_CANCELLED


# ---------------------------------------------------------------------------
# fetch_text / fetch_json
# ---------------------------------------------------------------------------


class TestFetchHelpers:
    async def test_fetch_text(self) -> None:
        with respx.mock:
            respx.get("https://example.com/").mock(return_value=httpx.Response(200, text="hi"))
            async with httpx.AsyncClient() as client:
                fetcher = DirectFetcher(client, "ua")
                assert await fetch_text(fetcher, "https://example.com/", "text/html") == "hi"

    async def test_fetch_json_sends_json_accept(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/api").mock(
                return_value=httpx.Response(200, json={"type": "video"})
            )
            async with httpx.AsyncClient() as client:
                data = await fetch_json(DirectFetcher(client, "ua"), "https://example.com/api")

        assert data == {"type": "video"}
        assert route.calls.last.request.headers["Accept"] == "application/json"

    async def test_fetch_json_invalid_body(self) -> None:
        with respx.mock:
            respx.get("https://example.com/api").mock(
                return_value=httpx.Response(200, text="<html>not json</html>")
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(FetchError, match="Invalid JSON"):
                    await fetch_json(DirectFetcher(client, "ua"), "https://example.com/api")


# ---------------------------------------------------------------------------
# CachedFetcher
# ---------------------------------------------------------------------------


class TestCachedFetcher:
    async def test_second_fetch_served_from_cache(self, memory_storage: MemoryCacheStorage) -> None:
        with respx.mock:
            route = respx.get("https://example.com/").mock(
                return_value=httpx.Response(200, text="<html>cached</html>")
            )
            async with httpx.AsyncClient() as client:
                fetcher = CachedFetcher(client, "ua", 5.0, memory_storage)
                first = await fetcher.fetch("https://example.com/", "text/html")
                second = await fetcher.fetch("https://example.com/", "text/html")

        assert route.call_count == 1
        assert first.text == second.text == "<html>cached</html>"
        assert "X-Cache" not in first.headers
        assert second.status_code == 200
        assert second.headers["X-Cache"] == "HIT"
        assert second.headers["Content-Type"] == "text/html"

    async def test_accept_is_part_of_the_key(self, memory_storage: MemoryCacheStorage) -> None:
        with respx.mock:
            route = respx.get("https://example.com/").mock(
                return_value=httpx.Response(200, text="body")
            )
            async with httpx.AsyncClient() as client:
                fetcher = CachedFetcher(client, "ua", 5.0, memory_storage)
                await fetcher.fetch("https://example.com/", "text/html")
                await fetcher.fetch("https://example.com/", "application/json")

        assert route.call_count == 2

    async def test_entry_expires_after_ttl(
        self, memory_storage: MemoryCacheStorage, clock: FakeClock
    ) -> None:
        with respx.mock:
            route = respx.get("https://example.com/").mock(
                return_value=httpx.Response(200, text="body")
            )
            async with httpx.AsyncClient() as client:
                fetcher = CachedFetcher(client, "ua", 5.0, memory_storage, cache_ttl=60)
                await fetcher.fetch("https://example.com/", "text/html")
                clock.advance(61)
                await fetcher.fetch("https://example.com/", "text/html")

        assert route.call_count == 2

    async def test_failure_is_replayed_from_cache(self, memory_storage: MemoryCacheStorage) -> None:
        with respx.mock:
            route = respx.get("https://example.com/gone").mock(return_value=httpx.Response(404))
            async with httpx.AsyncClient() as client:
                fetcher = CachedFetcher(client, "ua", 5.0, memory_storage)
                with pytest.raises(FetchError) as live:
                    await fetcher.fetch("https://example.com/gone", "text/html")
                with pytest.raises(FetchError) as replayed:
                    await fetcher.fetch("https://example.com/gone", "text/html")

        assert route.call_count == 1
        assert live.value.cached is False
        assert replayed.value.cached is True
        assert replayed.value.status == 404
        assert replayed.value.message == "HTTP error, status: 404"

    async def test_failure_expires_after_failure_ttl(
        self, memory_storage: MemoryCacheStorage, clock: FakeClock
    ) -> None:
        with respx.mock:
            route = respx.get("https://example.com/flaky").mock(
                side_effect=[httpx.Response(503), httpx.Response(200, text="recovered")]
            )
            async with httpx.AsyncClient() as client:
                fetcher = CachedFetcher(
                    client, "ua", 5.0, memory_storage, failure_cache_ttl=30
                )
                with pytest.raises(FetchError):
                    await fetcher.fetch("https://example.com/flaky", "text/html")
                clock.advance(31)
                response = await fetcher.fetch("https://example.com/flaky", "text/html")

        assert route.call_count == 2
        assert response.text == "recovered"

    async def test_failure_caching_disabled(self, memory_storage: MemoryCacheStorage) -> None:
        with respx.mock:
            route = respx.get("https://example.com/gone").mock(return_value=httpx.Response(500))
            async with httpx.AsyncClient() as client:
                fetcher = CachedFetcher(client, "ua", 5.0, memory_storage, cache_failures=False)
                for _ in range(2):
                    with pytest.raises(FetchError) as exc_info:
                        await fetcher.fetch("https://example.com/gone", "text/html")
                    assert exc_info.value.cached is False

        assert route.call_count == 2
        assert await memory_storage.size() == 0

    async def test_cache_disabled_always_fetches(self, memory_storage: MemoryCacheStorage) -> None:
        with respx.mock:
            route = respx.get("https://example.com/").mock(
                return_value=httpx.Response(200, text="x")
            )
            async with httpx.AsyncClient() as client:
                fetcher = CachedFetcher(client, "ua", 5.0, memory_storage, cache=False)
                await fetcher.fetch("https://example.com/", "text/html")
                await fetcher.fetch("https://example.com/", "text/html")

        assert route.call_count == 2
        assert await memory_storage.size() == 0

    async def test_broken_storage_never_masks_result(self) -> None:
        with respx.mock:
            respx.get("https://example.com/").mock(return_value=httpx.Response(200, text="ok"))
            respx.get("https://example.com/bad").mock(return_value=httpx.Response(404))
            async with httpx.AsyncClient() as client:
                fetcher = CachedFetcher(client, "ua", 5.0, _BrokenStorage())
                response = await fetcher.fetch("https://example.com/", "text/html")
                with pytest.raises(FetchError) as exc_info:
                    await fetcher.fetch("https://example.com/bad", "text/html")

        assert response.text == "ok"
        # The fetch error surfaces, not the cache error
        assert not isinstance(exc_info.value, CacheStorageError)
        assert exc_info.value.status == 404

    async def test_invalid_envelope_is_a_miss(self, memory_storage: MemoryCacheStorage) -> None:
        key = generate_cache_key("https://example.com/", "text/html", "ua")
        await memory_storage.set(key, "{not an envelope", 60)
        with respx.mock:
            route = respx.get("https://example.com/").mock(
                return_value=httpx.Response(200, text="fresh")
            )
            async with httpx.AsyncClient() as client:
                fetcher = CachedFetcher(client, "ua", 5.0, memory_storage)
                response = await fetcher.fetch("https://example.com/", "text/html")

        assert route.call_count == 1
        assert response.text == "fresh"

    async def test_cancellation_is_not_cached(self, memory_storage: MemoryCacheStorage) -> None:
        token = CancellationToken()
        token.cancel()
        async with _slow_client(0.0) as client:
            fetcher = CachedFetcher(client, "ua", 5.0, memory_storage)
            with pytest.raises(FetchCancelledError):
                await fetcher.fetch("https://example.com/", "text/html", token)

        assert await memory_storage.size() == 0


# ---------------------------------------------------------------------------
# build_fetcher
# ---------------------------------------------------------------------------


class TestBuildFetcher:
    async def test_without_storage_is_direct(self) -> None:
        async with httpx.AsyncClient() as client:
            assert isinstance(build_fetcher(Settings(), client, None), DirectFetcher)

    async def test_with_storage_is_cached(self, memory_storage: MemoryCacheStorage) -> None:
        settings = Settings()
        async with httpx.AsyncClient() as client:
            fetcher = build_fetcher(settings, client, memory_storage)
        assert isinstance(fetcher, CachedFetcher)
        assert fetcher.user_agent == settings.fetcher.user_agent
