"""Tool handler for extract_metadata.

Unlike render_card, fetch failures are not turned into fallback markup: they
propagate as LinkDecoError and reach the caller as a tool error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from linkdeco.models.tools import ExtractMetadataOutput
from linkdeco.tools._input import validate_url

if TYPE_CHECKING:
    from linkdeco.state import AppState


async def handle(url: str, state: AppState) -> dict:
    """Handle an extract_metadata tool call."""
    log = structlog.get_logger().bind(tool="extract_metadata", url=url)
    log.info("handler_called")

    validated = validate_url(url)
    engine = state.card_plugin.engine
    rule = engine.find_matching_rule(validated, log)
    metadata = await engine.fetch_metadata(validated, state.plugin_context(log))
    log.info("extract_complete", fields=len(metadata))

    output = ExtractMetadataOutput(
        url=validated,
        site_name=rule.site_name if rule is not None else None,
        metadata=metadata,
    )
    return output.model_dump(mode="json")
