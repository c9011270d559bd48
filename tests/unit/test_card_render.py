"""Unit tests for linkdeco.card.render."""

from __future__ import annotations

import pytest

from linkdeco.card.render import (
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    clean_text,
    generate_card_html,
    generate_fallback_html,
    truncate_text,
)

URL = "https://www.example.com/posts/1"


class TestTextHelpers:
    def test_truncate(self) -> None:
        assert truncate_text("short", 10) == "short"
        assert truncate_text("a" * 20, 10) == "aaaaaaa..."

    def test_clean(self) -> None:
        assert clean_text("  a \n\t b  ") == "a b"


class TestGenerateCardHtml:
    def test_full_card(self) -> None:
        html = generate_card_html(
            {
                "title": "Example <Article>",
                "description": "About   caching",
                "image": "https://example.com/cover.png",
                "siteName": "Example",
                "favicon": "https://example.com/favicon.ico",
                "url": URL,
            },
            URL,
        )
        assert html.startswith('<div class="card-container">')
        assert f'href="{URL}"' in html
        assert 'class="card-link"' in html
        assert '<div class="card-title">Example &lt;Article&gt;</div>' in html
        assert '<div class="card-description">About caching</div>' in html
        assert 'class="card-image"' in html
        assert 'class="card-favicon"' in html
        assert "<span>Example</span>" in html

    def test_defaults(self) -> None:
        html = generate_card_html({}, URL)
        assert '<div class="card-title">Untitled</div>' in html
        assert "<span>example.com</span>" in html
        assert "card-description" not in html

    def test_truncation(self) -> None:
        html = generate_card_html({"title": "t" * 200, "description": "d" * 500}, URL)
        assert "t" * (TITLE_MAX_LENGTH - 3) + "..." in html
        assert "t" * TITLE_MAX_LENGTH not in html
        assert "d" * (DESCRIPTION_MAX_LENGTH - 3) + "..." in html

    def test_extra_fields_rendered_in_order(self) -> None:
        metadata = {
            "title": "Skates",
            "siteName": "Amazon US",
            "features": ["a", "b", "c", "d"],
            "price": "$1,299",
            "identifier": "B0ACMESKATE",
        }
        html = generate_card_html(metadata, "https://www.amazon.com/dp/B0ACMESKATE")
        assert 'class="card-container card-amazon"' in html
        assert html.index("card-price") < html.index("card-features")
        # Fields without a display order come last
        assert html.index("card-features") < html.index("card-identifier")
        assert "<li>c</li>" in html
        assert "<li>d</li>" not in html

    def test_display_fields_hide_standard_fields(self) -> None:
        html = generate_card_html(
            {"title": "T", "description": "D", "image": "https://i/x.png", "price": "$1"},
            URL,
            {"title": 1},
        )
        assert "card-title" in html
        assert "card-description" not in html
        assert "card-image" not in html
        assert "card-link" not in html
        # Extra fields are still shown
        assert "card-price" in html

    @pytest.mark.parametrize(
        ("use_metadata_url_link", "expected"),
        [(False, URL), (True, "https://example.com/canonical")],
    )
    def test_link_target(self, use_metadata_url_link: bool, expected: str) -> None:
        html = generate_card_html(
            {"title": "T", "url": "https://example.com/canonical"},
            URL,
            use_metadata_url_link=use_metadata_url_link,
        )
        assert f'href="{expected}"' in html


class TestGenerateFallbackHtml:
    def test_generic(self) -> None:
        html = generate_fallback_html(URL)
        assert "card-fallback" in html
        assert "Content not accessible" in html
        assert "→ Open example.com in new tab" in html

    def test_timeout(self) -> None:
        html = generate_fallback_html(URL, "FetchTimeoutError[Request timed out]")
        assert "Request timeout - The site took too long to respond" in html

    def test_cross_origin(self) -> None:
        html = generate_fallback_html(URL, "CrossOriginError[blocked]")
        assert "CORS restriction" in html

    def test_other_error(self) -> None:
        html = generate_fallback_html(URL, "FetchError[HTTP error, status: 404]")
        assert "Access failed - FetchError[HTTP error, status: 404]" in html
