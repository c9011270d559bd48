from __future__ import annotations

from linkdeco.models.cache import CachedFailure, CacheEntry, FetchCacheEnvelope
from linkdeco.models.oembed import OEmbedEndpoint, OEmbedProvider, OEmbedResponse
from linkdeco.models.rules import (
    ExtractedMetadata,
    FieldSpec,
    FunctionProcessor,
    NamedProcessor,
    Processor,
    ProcessorContext,
    ScrapingRule,
    SelectorRule,
)
from linkdeco.models.tools import (
    ExtractMetadataOutput,
    RenderOutput,
    ResolveEndpointOutput,
    UrlInput,
)

__all__ = [
    # cache
    "CacheEntry",
    "CachedFailure",
    "FetchCacheEnvelope",
    # oembed
    "OEmbedEndpoint",
    "OEmbedProvider",
    "OEmbedResponse",
    # rules
    "ExtractedMetadata",
    "FieldSpec",
    "FunctionProcessor",
    "NamedProcessor",
    "Processor",
    "ProcessorContext",
    "ScrapingRule",
    "SelectorRule",
    # tools
    "UrlInput",
    "RenderOutput",
    "ExtractMetadataOutput",
    "ResolveEndpointOutput",
]
