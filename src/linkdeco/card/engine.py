"""Rule-based metadata extraction.

Pure extraction logic over a ParsedPage. The only I/O is in
``fetch_metadata``, which goes through the context's fetcher.

For each field of the matching rule, selector rules are tried in order and the
first one producing a value wins. Within a selector rule, selectors are tried
in order and the first selector with any values wins unless ``multiple`` is
set, in which case values from every selector are collected.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

from linkdeco.card.page import ParsedPage
from linkdeco.card.processors import display_host, execute_processor
from linkdeco.card.rules import OGP_RULES
from linkdeco.fetcher import fetch_text
from linkdeco.models.rules import ProcessorContext

if TYPE_CHECKING:
    from collections.abc import Iterable

    from structlog.typing import FilteringBoundLogger

    from linkdeco.models.rules import ExtractedMetadata, FieldSpec, ScrapingRule, SelectorRule
    from linkdeco.plugins import PluginContext

log = structlog.get_logger()


def minimal_metadata(url: str) -> ExtractedMetadata:
    return {"siteName": display_host(url), "url": url}


class RuleEngine:
    """Scraping rules in priority order, always ending with the OGP fallback."""

    def __init__(
        self,
        rules: Iterable[ScrapingRule] = (),
        *,
        fallback_rules: Iterable[ScrapingRule] = OGP_RULES,
    ) -> None:
        self._rules = (*rules, *fallback_rules)
        self._compiled = tuple(
            (rule, tuple(re.compile(pattern) for pattern in rule.patterns)) for rule in self._rules
        )

    @property
    def rules(self) -> tuple[ScrapingRule, ...]:
        return self._rules

    def find_matching_rule(
        self, url: str, logger: FilteringBoundLogger | None = None
    ) -> ScrapingRule | None:
        logger = logger or log
        for index, (rule, patterns) in enumerate(self._compiled):
            if any(pattern.search(url) for pattern in patterns):
                logger.debug("rule_matched", url=url, rule_index=index, site_name=rule.site_name)
                return rule
        logger.debug("rule_not_matched", url=url, rules=len(self._rules))
        return None

    def extract(
        self, page: ParsedPage, url: str, logger: FilteringBoundLogger | None = None
    ) -> ExtractedMetadata:
        """Extract metadata for ``url`` from ``page``.

        Never returns an empty mapping: when nothing could be extracted the
        result is ``{"siteName": <host>, "url": url}``.
        """
        logger = logger or log
        rule = self.find_matching_rule(url, logger)
        metadata = self.apply_rule(rule, page, url, logger) if rule is not None else {}
        if not metadata:
            logger.debug("metadata_minimal_fallback", url=url)
            return minimal_metadata(url)
        return metadata

    def apply_rule(
        self,
        rule: ScrapingRule,
        page: ParsedPage,
        url: str,
        logger: FilteringBoundLogger | None = None,
    ) -> ExtractedMetadata:
        logger = logger or log
        locale = rule.locale if rule.locale and rule.locale != "auto" else page.detect_locale()
        context = ProcessorContext(page=page, url=url, locale=locale)

        metadata: ExtractedMetadata = {}
        if rule.site_name:
            metadata["siteName"] = rule.site_name

        for name, spec in rule.fields.items():
            try:
                value = _extract_field(spec, page, context, logger)
            except Exception:
                # Bad selector or similar; the field is simply left out
                logger.warning("field_extraction_failed", field=name, url=url, exc_info=True)
                continue
            if value is None:
                if spec.required:
                    logger.debug("required_field_missing", field=name, url=url)
                continue
            metadata[name] = value

        logger.debug("metadata_extracted", url=url, fields=list(metadata))
        return metadata

    async def fetch_metadata(self, url: str, context: PluginContext) -> ExtractedMetadata:
        """Fetch ``url`` as HTML and extract its metadata.

        Fetch errors propagate to the caller.
        """
        logger = context.logger
        logger.info("metadata_fetch_start", url=url)
        try:
            html = await fetch_text(context.fetcher, url, "text/html", context.cancellation, logger)
        except Exception as exc:
            logger.warning("metadata_fetch_failed", url=url, error=str(exc))
            raise
        return self.extract(ParsedPage(html), url, logger)


def _extract_field(
    spec: FieldSpec,
    page: ParsedPage,
    context: ProcessorContext,
    logger: FilteringBoundLogger,
) -> str | list[str] | None:
    for rule in spec.rules:
        value = _extract_with_rule(rule, page, context, logger)
        if value is not None:
            return value
    return None


def _raw_values(rule: SelectorRule, page: ParsedPage, url: str) -> list[str]:
    if rule.selector is None:
        return [url]

    values: list[str] = []
    for selector in rule.selectors:
        for element in page.select(selector):
            if rule.method == "attr":
                value = page.attr_of(element, rule.attr or "href") or ""
            elif rule.method == "html":
                value = page.html_of(element)
            else:
                value = page.text_of(element)
            if value:
                values.append(value)
        if values and not rule.multiple:
            break
    return values


def _extract_with_rule(
    rule: SelectorRule,
    page: ParsedPage,
    context: ProcessorContext,
    logger: FilteringBoundLogger,
) -> str | list[str] | None:
    values = _raw_values(rule, page, context.url)
    if not values:
        return None

    if rule.processor is not None:
        processed = execute_processor(rule.processor, values, context, logger)
        if processed is None:
            return None
        if isinstance(processed, str):
            if not processed:
                return None
            return [processed] if rule.multiple else processed
        values = [value for value in processed if value]

    if not values:
        return None
    return values if rule.multiple else values[0]
