"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan context
manager) and injected into every tool handler via the MCP Context object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from linkdeco.cancellation import CancellationToken
from linkdeco.plugins import PluginContext

if TYPE_CHECKING:
    import httpx
    from structlog.typing import FilteringBoundLogger

    from linkdeco.config import Settings
    from linkdeco.models.oembed import OEmbedProvider
    from linkdeco.plugins import CardPlugin, OEmbedPlugin
    from linkdeco.protocols import CacheStorageProtocol, FetcherProtocol


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings
    fetcher: FetcherProtocol
    card_plugin: CardPlugin
    oembed_plugin: OEmbedPlugin
    providers: list[OEmbedProvider] = field(default_factory=list)
    http_client: httpx.AsyncClient | None = None
    cache: CacheStorageProtocol | None = None

    def plugin_context(self, logger: FilteringBoundLogger) -> PluginContext:
        """Build the per-call context bundle handed to an extension."""
        return PluginContext(
            fetcher=self.fetcher,
            logger=logger,
            cancellation=CancellationToken(),
        )
