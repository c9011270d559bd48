from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import ValidationError

from linkdeco.errors import FetchError
from linkdeco.fetcher import fetch_json
from linkdeco.models.oembed import OEmbedResponse
from linkdeco.oembed.redirects import resolve_redirects

if TYPE_CHECKING:
    import httpx

    from linkdeco.oembed.providers import EndpointResolver
    from linkdeco.plugins import PluginContext


async def fetch_oembed_data(
    url: str,
    context: PluginContext,
    resolver: EndpointResolver,
    *,
    redirect_client: httpx.AsyncClient | None = None,
    max_redirects: int = 5,
    timeout_each_redirect: float = 10.0,
) -> OEmbedResponse:
    """Resolve ``url`` to its oEmbed document.

    Redirects are followed first when ``redirect_client`` is given, so short
    links resolve against the provider they point to. ``web_page`` is filled
    with that final URL when the provider leaves it out.
    """
    logger = context.logger
    logger.info("oembed_fetch_start", url=url)

    final_url = url
    if redirect_client is not None:
        final_url = await resolve_redirects(
            redirect_client,
            url,
            max_redirects=max_redirects,
            timeout=timeout_each_redirect,
            user_agent=context.fetcher.user_agent,
            cancellation=context.cancellation,
            logger=logger,
        )
        if final_url != url:
            logger.info("oembed_redirect_resolved", url=url, final_url=final_url)

    api_url = await resolver.resolve(final_url, context.fetcher, context.cancellation, logger)
    logger.info("oembed_endpoint_resolved", url=final_url, endpoint=api_url)

    raw = await fetch_json(context.fetcher, api_url, context.cancellation, logger)
    try:
        data = OEmbedResponse.model_validate(raw)
    except ValidationError as exc:
        raise FetchError(f"Invalid oEmbed response from {api_url}: {exc}") from exc

    if not data.web_page:
        data.web_page = final_url
    return data
