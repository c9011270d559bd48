"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools
- Run the stdio transport
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import linkdeco.tools.extract_metadata as t_extract
import linkdeco.tools.render_card as t_card
import linkdeco.tools.render_embed as t_embed
import linkdeco.tools.resolve_oembed_endpoint as t_resolve
from linkdeco import __version__
from linkdeco.cache import open_cache_storage
from linkdeco.card.rules import AMAZON_RULES
from linkdeco.config import Settings
from linkdeco.errors import LinkDecoError
from linkdeco.fetcher import build_fetcher, build_http_client
from linkdeco.oembed.providers import load_providers
from linkdeco.plugins import (
    CardPlugin,
    CardPluginOptions,
    OEmbedCardFallback,
    OEmbedPlugin,
    OEmbedPluginOptions,
)
from linkdeco.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    import httpx

    from linkdeco.models.oembed import OEmbedProvider
    from linkdeco.protocols import CacheStorageProtocol, FetcherProtocol

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout is reserved for the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def build_state(
    settings: Settings,
    http_client: httpx.AsyncClient,
    storage: CacheStorageProtocol | None,
    providers: list[OEmbedProvider],
) -> AppState:
    """Wire fetcher and extensions from settings."""
    fetcher: FetcherProtocol = build_fetcher(settings, http_client, storage)
    redirect_client = http_client if settings.oembed.resolve_redirects else None

    oembed_options = OEmbedPluginOptions(
        max_redirects=settings.oembed.max_redirects,
        timeout_each_redirect=settings.oembed.timeout_each_redirect_seconds,
        use_metadata_url_link=settings.oembed.use_metadata_url_link,
    )
    card_options = CardPluginOptions(
        use_metadata_url_link=settings.card.use_metadata_url_link,
        scraping_rules=AMAZON_RULES if settings.card.amazon_rules else (),
        oembed_fallback=(
            OEmbedCardFallback(providers, oembed_options, redirect_client)
            if settings.card.oembed_fallback
            else None
        ),
    )

    return AppState(
        settings=settings,
        fetcher=fetcher,
        card_plugin=CardPlugin(card_options),
        oembed_plugin=OEmbedPlugin(providers, oembed_options, redirect_client),
        providers=providers,
        http_client=http_client,
        cache=storage,
    )


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info("server_starting", version=__version__, cache_backend=settings.cache.backend)

    providers_path = settings.oembed.providers_path
    providers = load_providers(Path(providers_path).expanduser() if providers_path else None)

    http_client = build_http_client(settings)
    try:
        async with open_cache_storage(settings.cache) as storage:
            state = build_state(settings, http_client, storage, providers)
            log.info(
                "server_started",
                version=__version__,
                providers=len(providers),
                cache_enabled=storage is not None,
            )
            yield state
    finally:
        await http_client.aclose()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("linkdeco", lifespan=lifespan)
# FastMCP doesn't expose a version kwarg; set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: LinkDecoError) -> CallToolResult:
    """Convert a LinkDecoError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


def _log_tool_error(tool: str, exc: LinkDecoError) -> None:
    log.warning(
        "tool_error",
        tool=tool,
        code=exc.code,
        message=exc.message,
        recoverable=exc.recoverable,
    )


@mcp.tool()
async def render_card(url: str, ctx: Context) -> object:
    """Render a link card (title, description, image, site name) for a web page."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_card.handle(url, state)
    except LinkDecoError as exc:
        _log_tool_error("render_card", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="render_card", exc_info=True)
        raise


@mcp.tool()
async def render_embed(url: str, ctx: Context) -> object:
    """Render embeddable oEmbed markup (video player, photo, rich post) for a URL."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_embed.handle(url, state)
    except LinkDecoError as exc:
        _log_tool_error("render_embed", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="render_embed", exc_info=True)
        raise


@mcp.tool()
async def extract_metadata(url: str, ctx: Context) -> object:
    """Extract structured metadata (OGP, Twitter Card, site-specific fields) from a page."""
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_extract.handle(url, state)
    except LinkDecoError as exc:
        _log_tool_error("extract_metadata", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="extract_metadata", exc_info=True)
        raise


@mcp.tool()
async def resolve_oembed_endpoint(url: str, ctx: Context, discover: bool = True) -> object:
    """Return the oEmbed API URL for a content URL.

    The bundled provider table is checked first. With discover=true the page
    itself is fetched and its oEmbed discovery link followed.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_resolve.handle(url, discover, state)
    except LinkDecoError as exc:
        _log_tool_error("resolve_oembed_endpoint", exc)
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="resolve_oembed_endpoint", exc_info=True)
        raise


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
