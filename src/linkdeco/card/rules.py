"""Bundled scraping rule catalogs.

``OGP_RULES`` matches every http(s) URL and is always appended after custom
rules, so extraction falls back through Open Graph, then Twitter Card, then
plain HTML elements. ``AMAZON_RULES`` is an opt-in catalog for product pages.
"""

from __future__ import annotations

from linkdeco.models.rules import FieldSpec, NamedProcessor, ScrapingRule, SelectorRule

_RESOLVE_URL = NamedProcessor("resolve_url")

_ICON_RULES = (
    SelectorRule('link[rel="icon"]', method="attr", attr="href", processor=_RESOLVE_URL),
    SelectorRule('link[rel="apple-touch-icon"]', method="attr", attr="href", processor=_RESOLVE_URL),
    SelectorRule('link[rel="shortcut icon"]', method="attr", attr="href", processor=_RESOLVE_URL),
)


def _meta(selector: str, **kwargs) -> SelectorRule:
    return SelectorRule(selector, method="attr", attr="content", **kwargs)


OGP_RULES: tuple[ScrapingRule, ...] = (
    ScrapingRule(
        patterns=(r"^https?://",),
        locale="auto",
        fields={
            "title": FieldSpec(
                required=True,
                rules=(
                    _meta('meta[property="og:title"]'),
                    _meta('meta[name="twitter:title"]'),
                    SelectorRule("title"),
                ),
            ),
            "description": FieldSpec(
                rules=(
                    _meta('meta[property="og:description"]'),
                    _meta('meta[name="twitter:description"]'),
                    _meta('meta[name="description"]'),
                ),
            ),
            "image": FieldSpec(
                rules=(
                    _meta('meta[property="og:image"]', processor=_RESOLVE_URL),
                    _meta('meta[name="twitter:image"]', processor=_RESOLVE_URL),
                    *_ICON_RULES,
                ),
            ),
            "siteName": FieldSpec(
                rules=(
                    _meta('meta[property="og:site_name"]'),
                    _meta('meta[name="twitter:site"]', processor=NamedProcessor("strip_prefix", {"prefix": "@"})),
                    SelectorRule(None, processor=NamedProcessor("host")),
                ),
            ),
            "url": FieldSpec(
                rules=(
                    _meta('meta[property="og:url"]'),
                    SelectorRule(None, processor=NamedProcessor("source_url")),
                ),
            ),
            "type": FieldSpec(rules=(_meta('meta[property="og:type"]'),)),
            "locale": FieldSpec(rules=(_meta('meta[property="og:locale"]'),)),
            "favicon": FieldSpec(rules=_ICON_RULES),
        },
    ),
)

_PRICE_SELECTORS = (
    "span.a-price-whole",
    "span.a-price.a-text-price",
    ".a-offscreen",
    "#priceblock_dealprice",
    "#priceblock_ourprice",
    "#price_inside_buybox",
)

_ASIN = SelectorRule(
    None,
    processor=NamedProcessor("regex", {"match": {"pattern": r"/dp/([A-Z0-9]{10,})", "group": 1}}),
)


def _amazon_rule(
    pattern: str,
    *,
    locale: str,
    site_name: str,
    currency_symbol: str,
    rating_marker: str,
    brand_pattern: str,
    features_heading: str,
) -> ScrapingRule:
    return ScrapingRule(
        patterns=(pattern,),
        locale=locale,
        site_name=site_name,
        fields={
            "title": FieldSpec(required=True, rules=(SelectorRule("#productTitle"),)),
            "price": FieldSpec(
                rules=(
                    SelectorRule(
                        _PRICE_SELECTORS,
                        processor=NamedProcessor("currency", {"symbol": currency_symbol}),
                    ),
                ),
            ),
            "reviewCount": FieldSpec(rules=(SelectorRule("#acrCustomerReviewText"),)),
            "rating": FieldSpec(
                rules=(
                    SelectorRule(
                        "span.a-icon-alt",
                        processor=NamedProcessor("filter", {"contains": rating_marker}),
                    ),
                ),
            ),
            "brand": FieldSpec(
                rules=(
                    SelectorRule(
                        "#bylineInfo",
                        processor=NamedProcessor(
                            "regex", {"match": {"pattern": brand_pattern, "group": 1}}
                        ),
                    ),
                ),
            ),
            "features": FieldSpec(
                rules=(
                    SelectorRule(
                        "#feature-bullets .a-list-item",
                        multiple=True,
                        processor=NamedProcessor(
                            "filter",
                            {"exclude_contains": [features_heading], "min_length": 5},
                        ),
                    ),
                ),
            ),
            "identifier": FieldSpec(rules=(_ASIN,)),
        },
    )


AMAZON_RULES: tuple[ScrapingRule, ...] = (
    _amazon_rule(
        r"^https?://(?:www\.)?amazon\.co\.jp/",
        locale="ja-JP",
        site_name="Amazon Japan",
        currency_symbol="¥",
        rating_marker="星",
        brand_pattern=r"ブランド:\s*([^の]+)",
        features_heading="この商品について",
    ),
    _amazon_rule(
        r"^https?://(?:www\.)?amazon\.com/",
        locale="en-US",
        site_name="Amazon US",
        currency_symbol="$",
        rating_marker="star",
        brand_pattern=r"Brand:\s*([^V]+?)(?:\s*Visit|$)",
        features_heading="About this item",
    ),
)
