"""Tool handler for render_embed."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from linkdeco.models.tools import RenderOutput
from linkdeco.tools._input import validate_url

if TYPE_CHECKING:
    from linkdeco.state import AppState


async def handle(url: str, state: AppState) -> dict:
    """Handle a render_embed tool call."""
    log = structlog.get_logger().bind(tool="render_embed", url=url)
    log.info("handler_called")

    validated = validate_url(url)
    html = await state.oembed_plugin.process_block(validated, state.plugin_context(log))
    log.info("render_complete", html_length=len(html))

    return RenderOutput(url=validated, kind="oembed", html=html).model_dump(mode="json")
