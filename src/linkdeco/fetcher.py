"""HTTP fetching with optional response caching.

All network I/O goes through a fetcher built once at startup and shared across
calls. Fetchers receive an httpx.AsyncClient via constructor injection; the
lifespan owns the client lifecycle.

``CachedFetcher`` stores successful bodies for ``cache_ttl`` seconds and, when
failure caching is on, remembers failures for ``failure_cache_ttl`` seconds so
that a broken URL is not hammered on every conversion. The original fetch
error is always the one re-raised; cache problems are only logged.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from pydantic import ValidationError

from linkdeco.cache import generate_cache_key
from linkdeco.errors import FetchCancelledError, FetchError, FetchTimeoutError, status_from_error
from linkdeco.models.cache import CachedFailure, FetchCacheEnvelope

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from linkdeco.cancellation import CancellationToken
    from linkdeco.config import Settings
    from linkdeco.protocols import CacheStorageProtocol, FetcherProtocol

log = structlog.get_logger()


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.fetcher.timeout_seconds),
        headers={"User-Agent": settings.fetcher.user_agent},
        limits=httpx.Limits(
            max_connections=settings.fetcher.max_connections,
            max_keepalive_connections=max(1, settings.fetcher.max_connections // 2),
        ),
    )


async def fetch_data(
    client: httpx.AsyncClient,
    url: str,
    accept: str,
    user_agent: str,
    timeout: float,
    cancellation: CancellationToken | None = None,
    logger: FilteringBoundLogger | None = None,
) -> httpx.Response:
    """GET ``url`` and return the response when its status is 2xx.

    Raises FetchTimeoutError when ``timeout`` elapses, FetchCancelledError when
    ``cancellation`` fires first, and FetchError for network failures and
    non-2xx statuses (message ``HTTP error, status: NNN``).
    """
    logger = logger or log
    request = client.get(url, headers={"Accept": accept, "User-Agent": user_agent})
    logger.debug("fetch_start", url=url, accept=accept)

    try:
        if cancellation is None:
            response = await asyncio.wait_for(request, timeout)
        else:
            response = await asyncio.wait_for(cancellation.run(request), timeout)
    except (TimeoutError, httpx.TimeoutException) as exc:
        logger.warning("fetch_timeout", url=url, timeout=timeout)
        raise FetchTimeoutError(f"Request timed out after {timeout}s: {url}") from exc
    except FetchCancelledError:
        logger.debug("fetch_cancelled", url=url)
        raise
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        logger.warning("fetch_network_error", url=url, error=str(exc))
        raise FetchError(f"Network error fetching {url}: {exc}") from exc

    if not response.is_success:
        logger.warning("fetch_http_error", url=url, status_code=response.status_code)
        raise FetchError(
            f"HTTP error, status: {response.status_code}",
            status=response.status_code,
        )

    logger.debug(
        "fetch_complete",
        url=url,
        status_code=response.status_code,
        content_length=len(response.content),
    )
    return response


async def fetch_text(
    fetcher: FetcherProtocol,
    url: str,
    accept: str,
    cancellation: CancellationToken | None = None,
    logger: FilteringBoundLogger | None = None,
) -> str:
    response = await fetcher.fetch(url, accept, cancellation, logger)
    return response.text


async def fetch_json(
    fetcher: FetcherProtocol,
    url: str,
    cancellation: CancellationToken | None = None,
    logger: FilteringBoundLogger | None = None,
) -> Any:
    """Fetch ``url`` with ``Accept: application/json`` and decode the body.

    A body that is not valid JSON raises FetchError.
    """
    response = await fetcher.fetch(url, "application/json", cancellation, logger)
    try:
        return response.json()
    except ValueError as exc:
        raise FetchError(f"Invalid JSON response from {url}: {exc}") from exc


class DirectFetcher:
    """Fetcher that always goes to the network."""

    def __init__(self, client: httpx.AsyncClient, user_agent: str, timeout: float = 60.0) -> None:
        self._client = client
        self._user_agent = user_agent
        self._timeout = timeout

    @property
    def user_agent(self) -> str:
        return self._user_agent

    async def fetch(
        self,
        url: str,
        accept: str,
        cancellation: CancellationToken | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> httpx.Response:
        return await fetch_data(
            self._client, url, accept, self._user_agent, self._timeout, cancellation, logger
        )


class CachedFetcher:
    """Fetcher that serves repeated requests from a cache storage."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        user_agent: str,
        timeout: float = 60.0,
        storage: CacheStorageProtocol | None = None,
        *,
        cache: bool = True,
        cache_ttl: float = 60 * 60,
        cache_failures: bool = True,
        failure_cache_ttl: float = 5 * 60,
    ) -> None:
        self._client = client
        self._user_agent = user_agent
        self._timeout = timeout
        self._storage = storage
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._cache_failures = cache_failures
        self._failure_cache_ttl = failure_cache_ttl

    @property
    def user_agent(self) -> str:
        return self._user_agent

    async def fetch(
        self,
        url: str,
        accept: str,
        cancellation: CancellationToken | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> httpx.Response:
        logger = logger or log
        if self._storage is None or not self._cache:
            return await self._fetch_live(url, accept, cancellation, logger)

        key = generate_cache_key(url, accept, self._user_agent)
        envelope = await self._read(key, logger)
        if envelope is not None:
            if envelope.type == "success":
                logger.debug("cache_hit", url=url)
                return httpx.Response(
                    200,
                    text=envelope.data,
                    headers={"Content-Type": accept, "X-Cache": "HIT"},
                    request=httpx.Request("GET", url),
                )
            if self._cache_failures and envelope.error is not None:
                logger.debug("cache_hit_failure", url=url, status=envelope.error.status)
                raise FetchError(envelope.error.message, status=envelope.error.status, cached=True)

        try:
            response = await self._fetch_live(url, accept, cancellation, logger)
        except FetchCancelledError:
            raise
        except Exception as exc:
            if self._cache_failures:
                failure = FetchCacheEnvelope(
                    type="error",
                    error=CachedFailure(message=str(exc), status=status_from_error(exc)),
                    timestamp=time.time(),
                )
                await self._write(key, failure, self._failure_cache_ttl, logger)
            raise

        success = FetchCacheEnvelope(type="success", data=response.text, timestamp=time.time())
        await self._write(key, success, self._cache_ttl, logger)
        return response

    async def _fetch_live(
        self,
        url: str,
        accept: str,
        cancellation: CancellationToken | None,
        logger: FilteringBoundLogger,
    ) -> httpx.Response:
        return await fetch_data(
            self._client, url, accept, self._user_agent, self._timeout, cancellation, logger
        )

    async def _read(self, key: str, logger: FilteringBoundLogger) -> FetchCacheEnvelope | None:
        assert self._storage is not None
        try:
            raw = await self._storage.get(key)
        except Exception:
            logger.warning("cache_read_error", key=key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return FetchCacheEnvelope.model_validate_json(raw)
        except ValidationError:
            logger.warning("cache_envelope_invalid", key=key)
            return None

    async def _write(
        self,
        key: str,
        envelope: FetchCacheEnvelope,
        ttl: float,
        logger: FilteringBoundLogger,
    ) -> None:
        assert self._storage is not None
        try:
            await self._storage.set(key, envelope.model_dump_json(), ttl)
        except Exception:
            # Cache problems must never mask the fetch result or its error
            logger.warning("cache_write_error", key=key, exc_info=True)


def build_fetcher(
    settings: Settings,
    client: httpx.AsyncClient,
    storage: CacheStorageProtocol | None = None,
) -> FetcherProtocol:
    """Return a CachedFetcher when a storage is available, else a DirectFetcher."""
    if storage is None or not settings.cache.enabled:
        return DirectFetcher(client, settings.fetcher.user_agent, settings.fetcher.timeout_seconds)
    return CachedFetcher(
        client,
        settings.fetcher.user_agent,
        settings.fetcher.timeout_seconds,
        storage,
        cache_ttl=settings.cache.ttl_seconds,
        cache_failures=settings.cache.cache_failures,
        failure_cache_ttl=settings.cache.failure_ttl_seconds,
    )
