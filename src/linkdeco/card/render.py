"""HTML card markup for extracted metadata."""

from __future__ import annotations

import re
from html import escape
from typing import TYPE_CHECKING

from linkdeco.card.processors import display_host
from linkdeco.oembed.render import image_tag, image_with_container

if TYPE_CHECKING:
    from collections.abc import Mapping

    from linkdeco.models.rules import ExtractedMetadata

DEFAULT_DISPLAY_FIELDS: Mapping[str, int] = {
    "title": 1,
    "image": 2,
    "description": 3,
    "siteName": 4,
    "favicon": 5,
    "url": 6,
    "price": 10,
    "rating": 11,
    "brand": 12,
    "features": 13,
}

TITLE_MAX_LENGTH = 80
DESCRIPTION_MAX_LENGTH = 160

# Rendered by dedicated slots rather than as generic fields
_STANDARD_FIELDS = frozenset(
    {"title", "description", "image", "url", "siteName", "type", "locale", "favicon"}
)
# Fields missing from display_fields are appended after everything else
_UNORDERED_BASE = 1000

_WHITESPACE = re.compile(r"\s+")


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def clean_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _domain(url: str) -> str:
    return display_host(url) or "unknown"


def generate_fallback_html(url: str, error_info: str | None = None) -> str:
    """Card shown when the page could not be fetched or parsed."""
    domain = _domain(url)
    message, hint = "Content not accessible", ""
    if error_info:
        if "CrossOrigin" in error_info or "CORS" in error_info:
            message, hint = "CORS restriction", "This site blocks cross-origin requests"
        elif "Timeout" in error_info:
            message, hint = "Request timeout", "The site took too long to respond"
        else:
            message, hint = "Access failed", error_info
    detail = f"{message} - {hint}" if hint else message

    return f"""<div class="card-container card-fallback">
  <div class="card-body">
    <div class="card-header">
      <div class="card-title">📄 External Content</div>
      <div class="card-provider">{escape(domain)}</div>
    </div>
    <div class="card-description">
      {escape(detail)}
    </div>
    <div class="card-content">
      <a href="{escape(url)}" target="_blank" rel="noopener noreferrer" class="card-external-link">
        → Open {escape(domain)} in new tab
      </a>
    </div>
  </div>
</div>"""


def _field_html(name: str, value: str | list[str]) -> str:
    css_name = escape(name)
    if isinstance(value, list):
        items = "".join(f"<li>{escape(item)}</li>" for item in value[:3])
        return f"""<div class="card-field card-{css_name}">
          <div class="field-label">{css_name}:</div>
          <ul class="field-list">{items}</ul>
        </div>"""
    return f"""<div class="card-field card-{css_name}">
          <span class="field-label">{css_name}:</span>
          <span class="field-value">{escape(value)}</span>
        </div>"""


def generate_card_html(
    metadata: ExtractedMetadata,
    url: str,
    display_fields: Mapping[str, int] | None = None,
    *,
    use_metadata_url_link: bool = False,
) -> str:
    """Render ``metadata`` as a link card for the block that referenced ``url``.

    ``display_fields`` maps a field name to its display order; standard fields
    missing from it are hidden. Extra fields (price, features, ...) missing
    from it are still shown, after the ordered ones.
    """
    fields = display_fields or DEFAULT_DISPLAY_FIELDS

    def text(key: str) -> str | None:
        value = metadata.get(key)
        return value if isinstance(value, str) else None

    title = truncate_text(clean_text(text("title") or "Untitled"), TITLE_MAX_LENGTH)
    description = truncate_text(clean_text(text("description") or ""), DESCRIPTION_MAX_LENGTH)
    image_url = text("image")
    favicon_url = text("favicon")
    link_url = (text("url") or url) if use_metadata_url_link else url
    site_name = text("siteName") or _domain(link_url)

    header: list[tuple[int, str]] = []
    images: list[tuple[int, str]] = []
    body: list[tuple[int, str]] = []

    if "title" in fields:
        header.append((fields["title"], f'<div class="card-title">{escape(title)}</div>'))
    if "siteName" in fields:
        favicon_html = ""
        if favicon_url and "favicon" in fields:
            favicon_html = image_tag(escape(favicon_url), "", 'class="card-favicon"')
        header.append(
            (
                fields["siteName"],
                f"""<div class="card-provider">
          {favicon_html}
          <span>{escape(site_name)}</span>
        </div>""",
            )
        )
    if image_url and "image" in fields:
        images.append(
            (
                fields["image"],
                image_with_container(escape(image_url), escape(title), "card-image"),
            )
        )
    if description and "description" in fields:
        body.append(
            (fields["description"], f'<div class="card-description">{escape(description)}</div>')
        )

    unordered = _UNORDERED_BASE
    for name, value in metadata.items():
        if name in _STANDARD_FIELDS:
            continue
        if name in fields:
            order = fields[name]
        else:
            order = unordered
            unordered += 1
        body.append((order, _field_html(name, value)))

    def joined(items: list[tuple[int, str]]) -> str:
        return "".join(html for _, html in sorted(items, key=lambda item: item[0]))

    header_html = joined(header)
    if header_html:
        header_html = f"""<div class="card-header">
        {header_html}
      </div>"""
    body_content = joined(body)
    body_html = (
        f"""<div class="card-body">
      {header_html}
      {body_content}
    </div>"""
        if header_html or body_content
        else ""
    )
    image_html = joined(images)

    if "url" in fields:
        content = f"""<a href="{escape(link_url)}" target="_blank" rel="noopener noreferrer" class="card-link">
    {image_html}
    {body_html}
  </a>"""
    else:
        content = f"""{image_html}
    {body_html}"""

    container_class = "card-container"
    if "amazon" in (text("siteName") or "").lower():
        container_class += " card-amazon"

    return f"""<div class="{container_class}">
  {content}
</div>"""
