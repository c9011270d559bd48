"""oEmbed provider table and endpoint resolution.

Resolution order for a content URL:
  1. Scheme map: the first provider scheme (in table order) matching the URL
     yields the endpoint, called with ``url`` and ``format=json``.
  2. Discovery: fetch the page and follow its
     ``<link type="application/json+oembed">`` element.
  3. Otherwise EndpointNotFoundError.
"""

from __future__ import annotations

import json
import re
from importlib.resources import files
from types import MappingProxyType
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

import structlog
from bs4 import BeautifulSoup

from linkdeco.errors import (
    EndpointNotFoundError,
    FetchCancelledError,
    is_cross_origin_error,
)
from linkdeco.fetcher import fetch_text
from linkdeco.models.oembed import OEmbedProvider

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

    from structlog.typing import FilteringBoundLogger

    from linkdeco.cancellation import CancellationToken
    from linkdeco.protocols import FetcherProtocol

log = structlog.get_logger()

_OEMBED_LINK_TYPE = "application/json+oembed"


def load_bundled_providers() -> list[OEmbedProvider]:
    """Load the provider snapshot bundled inside the package."""
    text = files("linkdeco.data").joinpath("providers.json").read_text(encoding="utf-8")
    return [OEmbedProvider(**entry) for entry in json.loads(text)]


def load_providers(local_path: Path | None = None) -> list[OEmbedProvider]:
    """Load providers, preferring a local providers.json over the bundled one."""
    if local_path and local_path.is_file():
        try:
            raw = json.loads(local_path.read_text(encoding="utf-8"))
            providers = [OEmbedProvider(**p) for p in raw]
            log.info("providers_loaded", source="disk", providers=len(providers), path=str(local_path))
            return providers
        except Exception:
            log.warning("providers_disk_load_failed", path=str(local_path), exc_info=True)

    providers = load_bundled_providers()
    log.info("providers_loaded", source="bundled", providers=len(providers))
    return providers


def build_scheme_map(providers: Iterable[OEmbedProvider]) -> Mapping[str, str]:
    """Map each lower-cased scheme pattern to its endpoint URL.

    A pattern listed twice keeps its first position but takes the later
    endpoint. Endpoints without schemes can only be reached by discovery.
    """
    scheme_map: dict[str, str] = {}
    for provider in providers:
        for endpoint in provider.endpoints:
            for scheme in endpoint.schemes:
                scheme_map[scheme.lower()] = endpoint.url
    return MappingProxyType(scheme_map)


def scheme_to_regex(scheme: str) -> re.Pattern[str]:
    """Compile an oEmbed scheme into an anchored, case-insensitive regex.

    ``*`` matches any run of characters, ``/`` included.
    """
    body = ".*".join(re.escape(part) for part in scheme.split("*"))
    return re.compile(f"^{body}$", re.IGNORECASE)


def build_endpoint_url(endpoint: str, content_url: str) -> str:
    """Return ``endpoint`` with ``url`` and ``format=json`` query parameters set."""
    parts = urlsplit(endpoint.replace("{format}", "json"))
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in ("url", "format")
    ]
    query += [("url", content_url), ("format", "json")]
    return urlunsplit(parts._replace(query=urlencode(query)))


def find_discovery_link(html: str, base_url: str) -> str | None:
    """Return the absolute href of the page's JSON oEmbed link, if any."""
    soup = BeautifulSoup(html, "html.parser")
    for link in soup.find_all("link", href=True):
        link_type = link.get("type")
        if isinstance(link_type, str) and link_type.strip().lower() == _OEMBED_LINK_TYPE:
            href = link["href"]
            if isinstance(href, list):
                href = " ".join(href)
            href = href.strip()
            if href:
                return urljoin(base_url, href)
    return None


class EndpointResolver:
    """Resolve content URLs to oEmbed API URLs for a fixed provider table."""

    def __init__(
        self,
        providers: Iterable[OEmbedProvider],
        fetcher: FetcherProtocol | None = None,
        *,
        discovery: bool = True,
    ) -> None:
        self._scheme_map = build_scheme_map(providers)
        self._patterns = tuple(
            (scheme_to_regex(scheme), endpoint) for scheme, endpoint in self._scheme_map.items()
        )
        self._fetcher = fetcher
        self._discovery = discovery

    @property
    def scheme_map(self) -> Mapping[str, str]:
        return self._scheme_map

    def match_endpoint(self, url: str) -> str | None:
        """Return the endpoint of the first scheme matching ``url``."""
        for pattern, endpoint in self._patterns:
            if pattern.match(url):
                return endpoint
        return None

    def match(self, url: str) -> str | None:
        """Return the full oEmbed API URL from the scheme map, without discovery."""
        endpoint = self.match_endpoint(url)
        return build_endpoint_url(endpoint, url) if endpoint else None

    async def resolve(
        self,
        url: str,
        fetcher: FetcherProtocol | None = None,
        cancellation: CancellationToken | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> str:
        """Return the oEmbed API URL for ``url``.

        Raises EndpointNotFoundError when neither a scheme nor page discovery
        yields an endpoint. FetchCancelledError from ``cancellation`` propagates.
        """
        logger = logger or log
        api_url = self.match(url)
        if api_url is not None:
            logger.debug("oembed_endpoint_matched", url=url, endpoint=api_url)
            return api_url

        discovered = await self.discover(url, fetcher, cancellation, logger)
        if discovered is not None:
            logger.debug("oembed_endpoint_discovered", url=url, endpoint=discovered)
            return discovered

        raise EndpointNotFoundError(url)

    async def discover(
        self,
        url: str,
        fetcher: FetcherProtocol | None = None,
        cancellation: CancellationToken | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> str | None:
        logger = logger or log
        fetcher = fetcher or self._fetcher
        if not self._discovery or fetcher is None:
            return None

        try:
            html = await fetch_text(fetcher, url, "text/html", cancellation, logger)
        except FetchCancelledError:
            raise
        except Exception as exc:
            if is_cross_origin_error(exc):
                logger.debug("oembed_discovery_blocked", url=url, error=str(exc))
            else:
                logger.warning("oembed_discovery_failed", url=url, error=str(exc))
            return None

        return find_discovery_link(html, url)
