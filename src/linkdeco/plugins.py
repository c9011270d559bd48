"""Block extensions called by the conversion pipeline.

The pipeline calls ``process_block(content, context)`` once per recognised
block, where ``content`` is the block body (a URL) and ``context`` the
per-call PluginContext. Fetch failures never escape a plugin: they are logged
and rendered as fallback markup. An invalid URL raises InvalidUrlError, and
caller cancellation raises FetchCancelledError.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

import structlog

from linkdeco.card.engine import RuleEngine
from linkdeco.card.render import generate_card_html
from linkdeco.card.render import generate_fallback_html as generate_card_fallback_html
from linkdeco.errors import (
    EndpointNotFoundError,
    FetchCancelledError,
    InvalidUrlError,
    format_error_info,
    is_cross_origin_error,
)
from linkdeco.oembed.fetcher import fetch_oembed_data
from linkdeco.oembed.providers import EndpointResolver
from linkdeco.oembed.render import generate_fallback_html as generate_oembed_fallback_html
from linkdeco.oembed.render import generate_html as generate_oembed_html

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    import httpx
    from structlog.typing import FilteringBoundLogger

    from linkdeco.cancellation import CancellationToken
    from linkdeco.models.oembed import OEmbedProvider
    from linkdeco.models.rules import ScrapingRule
    from linkdeco.protocols import FetcherProtocol


def _unique_id_factory() -> Callable[[str], str]:
    counter = itertools.count(1)
    return lambda prefix: f"{prefix}-{next(counter)}"


@dataclass
class PluginContext:
    """Everything an extension may use while processing one block."""

    fetcher: FetcherProtocol
    logger: FilteringBoundLogger = field(default_factory=structlog.get_logger)
    cancellation: CancellationToken | None = None
    frontmatter: dict[str, Any] = field(default_factory=dict)
    get_unique_id: Callable[[str], str] = field(default_factory=_unique_id_factory)


def is_valid_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def _validated_url(content: str) -> str:
    url = content.strip()
    if not is_valid_url(url):
        raise InvalidUrlError(url)
    return url


@dataclass(frozen=True)
class OEmbedPluginOptions:
    max_redirects: int = 5
    timeout_each_redirect: float = 10.0
    # None renders every field in the default order
    display_fields: Mapping[str, int] | None = None
    use_metadata_url_link: bool = False


class OEmbedPlugin:
    name = "oembed"

    def __init__(
        self,
        providers: Iterable[OEmbedProvider],
        options: OEmbedPluginOptions | None = None,
        redirect_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._options = options or OEmbedPluginOptions()
        self._resolver = EndpointResolver(providers)
        self._redirect_client = redirect_client

    @property
    def resolver(self) -> EndpointResolver:
        return self._resolver

    async def process_block(self, content: str, context: PluginContext) -> str:
        url = _validated_url(content)
        try:
            data = await fetch_oembed_data(
                url,
                context,
                self._resolver,
                redirect_client=self._redirect_client,
                max_redirects=self._options.max_redirects,
                timeout_each_redirect=self._options.timeout_each_redirect,
            )
        except FetchCancelledError:
            raise
        except Exception as exc:
            context.logger.warning("oembed_block_failed", url=url, error=format_error_info(exc))
            return generate_oembed_fallback_html(url, format_error_info(exc))

        return generate_oembed_html(
            data,
            url,
            self._options.display_fields,
            use_metadata_url_link=self._options.use_metadata_url_link,
        )


class OEmbedCardFallback:
    """Renders card blocks through oEmbed when a provider scheme matches.

    Returns None when no scheme matches so the card path can continue. No
    page discovery is attempted; the card path fetches the page anyway.
    """

    def __init__(
        self,
        providers: Iterable[OEmbedProvider],
        options: OEmbedPluginOptions | None = None,
        redirect_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._options = options or OEmbedPluginOptions()
        self._resolver = EndpointResolver(providers, discovery=False)
        self._redirect_client = redirect_client

    async def render(self, url: str, context: PluginContext) -> str | None:
        try:
            data = await fetch_oembed_data(
                url,
                context,
                self._resolver,
                redirect_client=self._redirect_client,
                max_redirects=self._options.max_redirects,
                timeout_each_redirect=self._options.timeout_each_redirect,
            )
        except EndpointNotFoundError:
            return None
        except Exception as exc:
            if is_cross_origin_error(exc):
                return None
            raise

        return generate_oembed_html(
            data,
            url,
            self._options.display_fields,
            use_metadata_url_link=self._options.use_metadata_url_link,
        )


@dataclass(frozen=True)
class CardPluginOptions:
    use_metadata_url_link: bool = False
    display_fields: Mapping[str, int] | None = None
    # Tried in order before the built-in OGP rules
    scraping_rules: tuple[ScrapingRule, ...] = ()
    oembed_fallback: OEmbedCardFallback | None = None


class CardPlugin:
    name = "card"

    def __init__(self, options: CardPluginOptions | None = None) -> None:
        self._options = options or CardPluginOptions()
        self._engine = RuleEngine(self._options.scraping_rules)

    @property
    def engine(self) -> RuleEngine:
        return self._engine

    async def process_block(self, content: str, context: PluginContext) -> str:
        url = _validated_url(content)

        fallback = self._options.oembed_fallback
        if fallback is not None:
            try:
                html = await fallback.render(url, context)
            except FetchCancelledError:
                raise
            except Exception as exc:
                context.logger.warning(
                    "card_oembed_fallback_failed", url=url, error=format_error_info(exc)
                )
            else:
                if html is not None:
                    return html

        try:
            metadata = await self._engine.fetch_metadata(url, context)
        except FetchCancelledError:
            raise
        except Exception as exc:
            context.logger.warning("card_block_failed", url=url, error=format_error_info(exc))
            return generate_card_fallback_html(url, format_error_info(exc))

        return generate_card_html(
            metadata,
            url,
            self._options.display_fields,
            use_metadata_url_link=self._options.use_metadata_url_link,
        )
