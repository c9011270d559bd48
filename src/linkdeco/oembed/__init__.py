from __future__ import annotations

from linkdeco.oembed.fetcher import fetch_oembed_data
from linkdeco.oembed.providers import (
    EndpointResolver,
    build_endpoint_url,
    build_scheme_map,
    load_bundled_providers,
    load_providers,
    scheme_to_regex,
)
from linkdeco.oembed.redirects import resolve_redirects
from linkdeco.oembed.render import generate_fallback_html, generate_html

__all__ = [
    "EndpointResolver",
    "build_endpoint_url",
    "build_scheme_map",
    "fetch_oembed_data",
    "generate_fallback_html",
    "generate_html",
    "load_bundled_providers",
    "load_providers",
    "resolve_redirects",
    "scheme_to_regex",
]
