"""HTML fragments for oEmbed blocks.

``display_fields`` maps a field name to its display order; a field that is
absent from the mapping is not rendered. Title, author, provider and
description go to the header section, everything else to the content section.
"""

from __future__ import annotations

import re
from html import escape
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from collections.abc import Mapping

    from linkdeco.models.oembed import OEmbedResponse

DEFAULT_DISPLAY_FIELDS: Mapping[str, int] = {
    "title": 1,
    "author": 2,
    "provider": 3,
    "description": 4,
    "thumbnail": 5,
    "embedded_content": 6,
    "external_link": 7,
}

_HEADER_FIELDS = frozenset({"title", "author", "provider", "description"})

_IMAGE_STYLE = (
    "width: 100%; height: auto; display: block; object-fit: contain; object-position: center;"
)

_RESPONSIVE_IFRAME_STYLES = """
    <style>
      .oembed-responsive-wrapper {
        position: relative;
        width: 100%;
        height: 0;
        overflow: hidden;
      }
      .oembed-iframe-container {
        position: absolute;
        top: 0;
        left: 0;
        width: 100%;
        height: 100%;
      }
      .oembed-iframe-container iframe {
        width: 100% !important;
        height: 100% !important;
        border: none !important;
      }
    </style>
  """

_IFRAME_TAG = re.compile(r"<iframe[^>]*>", re.IGNORECASE)
_WIDTH_ATTR = re.compile(r"""width=['"]?(\d+)['"]?""", re.IGNORECASE)
_HEIGHT_ATTR = re.compile(r"""height=['"]?(\d+)['"]?""", re.IGNORECASE)

# Padding ratio used when neither the response nor the iframe has a usable size
_DEFAULT_RATIO = 56.25


def display_domain(url: str) -> str:
    hostname = urlsplit(url).hostname or ""
    return hostname.removeprefix("www.")


def _as_int(value: int | str | None) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _format_number(value: float) -> str:
    return format(value, ".10g")


def image_tag(src: str, alt: str, extra_attrs: str = "") -> str:
    extra = f" {extra_attrs}" if extra_attrs else ""
    return f'<img src="{src}" alt="{alt}" style="{_IMAGE_STYLE}"{extra} />'


def image_with_container(src: str, alt: str, container_class: str) -> str:
    return f"""<div class="{container_class}">
      {image_tag(src, alt)}
    </div>"""


def calculate_aspect_ratio(width: int | str | None, height: int | str | None) -> float | None:
    """Return height as a percentage of width, for a padding-bottom wrapper.

    Ratios outside 1:10 to 10:1 are rejected. When only one side is known,
    16:9 is assumed.
    """
    w, h = _as_int(width), _as_int(height)
    if w > 0 and h > 0:
        ratio = h / w * 100
        if 10 <= ratio <= 1000:
            return ratio
    if w > 0 and h <= 0:
        return _DEFAULT_RATIO
    if h > 0 and w <= 0:
        return _DEFAULT_RATIO
    return None


def extract_aspect_ratio_from_html(html: str) -> float | None:
    """Read width/height from the first iframe tag in ``html``."""
    iframe = _IFRAME_TAG.search(html)
    if iframe is None:
        return None
    width = _WIDTH_ATTR.search(iframe.group(0))
    height = _HEIGHT_ATTR.search(iframe.group(0))
    return calculate_aspect_ratio(
        int(width.group(1)) if width else None,
        int(height.group(1)) if height else None,
    )


def make_responsive(html: str, data: OEmbedResponse | None = None) -> str:
    """Wrap iframe embeds in a container that keeps their aspect ratio."""
    if not html or not _IFRAME_TAG.search(html):
        return html
    ratio = None
    if data is not None:
        ratio = calculate_aspect_ratio(data.width, data.height)
    if ratio is None:
        ratio = extract_aspect_ratio_from_html(html)
    if ratio is None:
        ratio = _DEFAULT_RATIO
    return (
        f'{_RESPONSIVE_IFRAME_STYLES}<div class="oembed-responsive-wrapper" '
        f'style="padding-bottom: {_format_number(ratio)}%;">'
        f'<div class="oembed-iframe-container">{html}</div></div>'
    )


def generate_fallback_html(url: str, error_info: str | None = None) -> str:
    """Markup shown when no oEmbed data could be obtained for ``url``."""
    domain = display_domain(url)
    indicator = f" (Failed by {escape(error_info)})" if error_info else ""
    return f"""<div class="oembed-container oembed-fallback">
  <div class="oembed-header">
    <div class="oembed-title">External Content</div>
    <div class="oembed-provider">{escape(domain)}{indicator}</div>
  </div>
  <div class="oembed-content">
    <a href="{escape(url)}" target="_blank" rel="noopener noreferrer">
      View content on {escape(domain)}
    </a>
  </div>
</div>"""


def _external_link(data: OEmbedResponse, url: str, domain: str, use_metadata_url_link: bool) -> str:
    link_url = (data.web_page or url) if use_metadata_url_link else url
    return f"""<div class="oembed-external-link">
      <a href="{escape(link_url)}" target="_blank" rel="noopener noreferrer">
        Visit {escape(domain)}
      </a>
    </div>"""


def _assemble(items: dict[str, str], display_fields: Mapping[str, int], kind: str) -> str:
    ordered = sorted(
        (display_fields[name], name) for name in items if name in display_fields
    )
    header = "".join(items[name] for _, name in ordered if name in _HEADER_FIELDS)
    content = "".join(items[name] for _, name in ordered if name not in _HEADER_FIELDS)

    header_html = f'<div class="oembed-header">{header}</div>' if header else ""
    content_html = f"""<div class="oembed-content">
    {content}
  </div>""" if content else ""
    return f"""<div class="oembed-container oembed-{kind}">
  {header_html}
  {content_html}
</div>"""


def generate_html(
    data: OEmbedResponse,
    url: str,
    display_fields: Mapping[str, int] | None = None,
    *,
    use_metadata_url_link: bool = False,
) -> str:
    """Render an oEmbed response for the block that referenced ``url``."""
    fields = DEFAULT_DISPLAY_FIELDS if display_fields is None else display_fields
    domain = display_domain(url)

    if data.type == "photo":
        kind = "photo"
        title = data.title or "Untitled"
        width, height = _as_int(data.width), _as_int(data.height)
        size_attrs = f'width="{width}" height="{height}"' if width > 0 and height > 0 else ""
        embedded = image_tag(escape(data.url), escape(title), size_attrs) if data.url else ""
    elif data.type in ("video", "rich"):
        kind = "video"
        title = data.title or "Untitled"
        embedded = make_responsive(data.html or "", data)
    elif data.type == "link":
        kind = "link"
        title = data.title or "Link"
        embedded = data.html or ""
    else:
        return generate_fallback_html(url)

    items: dict[str, str] = {
        "title": f'<div class="oembed-title">{escape(title)}</div>',
        "author": f'<div class="oembed-author">by {escape(data.author_name or "Unknown")}</div>',
        "provider": f'<div class="oembed-provider">{escape(domain)}</div>',
        "external_link": _external_link(data, url, domain, use_metadata_url_link),
    }
    if data.author_name:
        items["description"] = f'<div class="oembed-description">{escape(data.author_name)}</div>'
    if data.thumbnail_url:
        items["thumbnail"] = image_with_container(
            escape(data.thumbnail_url), escape(title), "oembed-thumbnail"
        )
    if embedded:
        items["embedded_content"] = embedded

    return _assemble(items, fields, kind)
