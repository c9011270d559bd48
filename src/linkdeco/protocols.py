"""Protocol interfaces for swappable components.

Resolvers, the rule engine and the extensions reference these protocols, not
the concrete implementations. This allows:
- Tests to use lightweight in-memory fakes
- Additional cache backends or fetchers to be swapped in without changing callers
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import httpx
    from structlog.typing import FilteringBoundLogger

    from linkdeco.cancellation import CancellationToken


class CacheStorageProtocol(Protocol):
    """Key/value store with per-entry expiry (ttl in seconds)."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl: float | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def clear(self) -> None: ...

    async def size(self) -> int: ...


class FetcherProtocol(Protocol):
    """GET a URL with a fixed user agent and timeout."""

    @property
    def user_agent(self) -> str: ...

    async def fetch(
        self,
        url: str,
        accept: str,
        cancellation: CancellationToken | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> httpx.Response: ...
