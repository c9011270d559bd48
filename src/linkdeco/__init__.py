"""linkdeco: link cards and oEmbed embeds for URLs found in documents.

The block extensions are the entry points for a conversion pipeline::

    from linkdeco import CardPlugin, OEmbedPlugin, PluginContext

The MCP server in ``linkdeco.server`` exposes the same extensions as tools.
"""

from __future__ import annotations

import warnings
from importlib.metadata import PackageNotFoundError, version

from linkdeco.cancellation import CancellationToken
from linkdeco.errors import LinkDecoError
from linkdeco.plugins import (
    CardPlugin,
    CardPluginOptions,
    OEmbedCardFallback,
    OEmbedPlugin,
    OEmbedPluginOptions,
    PluginContext,
)

__all__ = [
    "CancellationToken",
    "CardPlugin",
    "CardPluginOptions",
    "LinkDecoError",
    "OEmbedCardFallback",
    "OEmbedPlugin",
    "OEmbedPluginOptions",
    "PluginContext",
    "__version__",
]

_FALLBACK_VERSION = "0.0.0+unknown"


def _package_version() -> str:
    try:
        return version("linkdeco")
    except PackageNotFoundError:
        # Running from a source tree without installed metadata
        warnings.warn(
            f"Package metadata for 'linkdeco' not found; using fallback version "
            f"'{_FALLBACK_VERSION}'.",
            RuntimeWarning,
            stacklevel=2,
        )
        return _FALLBACK_VERSION


__version__ = _package_version()
