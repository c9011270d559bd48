"""Tool handler for resolve_oembed_endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from linkdeco.errors import EndpointNotFoundError
from linkdeco.models.tools import ResolveEndpointOutput
from linkdeco.tools._input import validate_url

if TYPE_CHECKING:
    from linkdeco.state import AppState


async def handle(url: str, discover: bool, state: AppState) -> dict:
    """Handle a resolve_oembed_endpoint tool call.

    The provider table is consulted first; page discovery runs only when
    ``discover`` is true.
    """
    log = structlog.get_logger().bind(tool="resolve_oembed_endpoint", url=url)
    log.info("handler_called", discover=discover)

    validated = validate_url(url)
    resolver = state.oembed_plugin.resolver

    endpoint = resolver.match(validated)
    if endpoint is not None:
        output = ResolveEndpointOutput(url=validated, endpoint=endpoint, matched_via="scheme")
        return output.model_dump(mode="json")

    if discover:
        context = state.plugin_context(log)
        endpoint = await resolver.discover(validated, context.fetcher, context.cancellation, log)
        if endpoint is not None:
            output = ResolveEndpointOutput(url=validated, endpoint=endpoint, matched_via="discovery")
            return output.model_dump(mode="json")

    raise EndpointNotFoundError(validated)
