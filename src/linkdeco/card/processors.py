"""Value processors applied to raw strings pulled from a page.

Every processor takes the raw values of one selector rule and returns a
single string, a list of strings, or None for "no value". Named processors
are looked up in ``PROCESSORS``; their parameters come from
``NamedProcessor.params``.

``execute_processor`` never raises: a failing processor is logged and the
value is treated as absent.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin, urlsplit

import structlog

from linkdeco.models.rules import FunctionProcessor, NamedProcessor

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from structlog.typing import FilteringBoundLogger

    from linkdeco.models.rules import Processor, ProcessorContext, ProcessorResult

    NamedProcessorFn = Callable[[list[str], Mapping[str, Any], ProcessorContext], ProcessorResult]

log = structlog.get_logger()

_NUMBER_RUN = re.compile(r"[\d,.]+")
_PLAIN_DECIMAL = re.compile(r"^\d+(\.\d+)?$")
_JS_REPLACEMENT_TOKEN = re.compile(r"\$(\$|&|\d{1,2})")

_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}

# language -> (thousands separator, decimal separator)
_NUMBER_SEPARATORS: dict[str, tuple[str, str]] = {
    "de": (".", ","),
    "es": (".", ","),
    "it": (".", ","),
    "nl": (".", ","),
    "pt": (".", ","),
    "fr": ("\u202f", ","),
    "ru": ("\u00a0", ","),
}


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def resolve_url(url: str, base_url: str) -> str:
    """Make ``url`` absolute against ``base_url``; returns it unchanged on failure."""
    if url.startswith(("http://", "https://")):
        return url
    try:
        if url.startswith("//"):
            return f"{urlsplit(base_url).scheme}:{url}"
        return urljoin(base_url, url)
    except ValueError:
        return url


def display_host(url: str) -> str:
    try:
        hostname = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    return hostname.removeprefix("www.")


def format_amount(amount: float, locale: str | None = None) -> str:
    """Group thousands and keep at most three fraction digits.

    Separators follow the language of ``locale``; unknown or missing locales
    use ``,`` for thousands and ``.`` for decimals.
    """
    text = f"{amount:,.3f}".rstrip("0").rstrip(".")
    language = (locale or "").replace("_", "-").split("-")[0].lower()
    thousands, decimal = _NUMBER_SEPARATORS.get(language, (",", "."))
    if (thousands, decimal) == (",", "."):
        return text
    integer, _, fraction = text.partition(".")
    integer = integer.replace(",", thousands)
    return f"{integer}{decimal}{fraction}" if fraction else integer


def _compile(pattern: str, flags: str = "") -> re.Pattern[str]:
    value = 0
    for flag in flags:
        value |= _REGEX_FLAGS.get(flag, 0)
    return re.compile(pattern, value)


def _js_replacement(template: str) -> Callable[[re.Match[str]], str]:
    """Turn a ``$1``/``$&`` replacement template into an re.sub callable."""

    def replace(match: re.Match[str]) -> str:
        def token(found: re.Match[str]) -> str:
            name = found.group(1)
            if name == "$":
                return "$"
            if name == "&":
                return match.group(0)
            index = int(name)
            if 0 < index <= (match.re.groups or 0):
                return match.group(index) or ""
            return found.group(0)

        return _JS_REPLACEMENT_TOKEN.sub(token, template)

    return replace


def _regex(values: list[str], params: Mapping[str, Any], context: ProcessorContext) -> ProcessorResult:
    replace = params.get("replace")
    if replace:
        steps = [
            (
                _compile(step["pattern"], step.get("flags", "g")),
                "g" in step.get("flags", "g"),
                _js_replacement(step.get("replacement", "")),
            )
            for step in _as_list(replace)
        ]
        results = []
        for value in values:
            for pattern, global_, replacement in steps:
                value = pattern.sub(replacement, value, count=0 if global_ else 1)
            results.append(value.strip())
        return [v for v in results if v]

    match = params.get("match")
    if match:
        pattern = _compile(match["pattern"], match.get("flags", ""))
        group = match.get("group", 0)
        results = []
        for value in values:
            found = pattern.search(value)
            extracted = found.group(group) if found else None
            if extracted:
                results.append(extracted.strip())
        return [v for v in results if v]

    return values


def _filter(values: list[str], params: Mapping[str, Any], context: ProcessorContext) -> ProcessorResult:
    contains = params.get("contains")
    exclude = _as_list(params.get("exclude_contains"))
    min_length = params.get("min_length")
    max_length = params.get("max_length")

    def keep(value: str) -> bool:
        if min_length and len(value) < min_length:
            return False
        if max_length and len(value) > max_length:
            return False
        if contains and contains not in value:
            return False
        return not any(word in value for word in exclude)

    return [value for value in values if keep(value)]


def _slice(values: list[str], params: Mapping[str, Any], context: ProcessorContext) -> ProcessorResult:
    return values[params.get("start") or 0 : params.get("end")]


def _first(values: list[str], params: Mapping[str, Any], context: ProcessorContext) -> ProcessorResult:
    return values[0] if values else None


def _currency(values: list[str], params: Mapping[str, Any], context: ProcessorContext) -> ProcessorResult:
    symbol = params.get("symbol") or "$"
    locale = params.get("locale") or context.locale
    results = []
    for value in values:
        found = _NUMBER_RUN.search(value)
        cleaned = found.group(0).replace(",", "") if found else ""
        if _PLAIN_DECIMAL.match(cleaned):
            results.append(f"{symbol}{format_amount(float(cleaned), locale)}")
        else:
            results.append(value)
    return [v for v in results if v]


def _resolve_url(values: list[str], params: Mapping[str, Any], context: ProcessorContext) -> ProcessorResult:
    return [resolve_url(value, context.url) for value in values if value]


def _strip_prefix(values: list[str], params: Mapping[str, Any], context: ProcessorContext) -> ProcessorResult:
    prefix = params.get("prefix", "@")
    return [v for v in (value.removeprefix(prefix).strip() for value in values) if v]


def _host(values: list[str], params: Mapping[str, Any], context: ProcessorContext) -> ProcessorResult:
    return display_host(context.url) or None


def _source_url(values: list[str], params: Mapping[str, Any], context: ProcessorContext) -> ProcessorResult:
    return context.url


PROCESSORS: Mapping[str, NamedProcessorFn] = {
    "regex": _regex,
    "filter": _filter,
    "slice": _slice,
    "first": _first,
    "currency": _currency,
    "resolve_url": _resolve_url,
    "strip_prefix": _strip_prefix,
    "host": _host,
    "source_url": _source_url,
}


def execute_processor(
    processor: Processor,
    values: list[str],
    context: ProcessorContext,
    logger: FilteringBoundLogger | None = None,
) -> ProcessorResult:
    logger = logger or log
    try:
        if isinstance(processor, FunctionProcessor):
            return processor.fn(values, context)
        if isinstance(processor, NamedProcessor):
            handler = PROCESSORS.get(processor.kind)
            if handler is None:
                logger.warning("processor_unknown", kind=processor.kind)
                return values
            return handler(values, processor.params, context)
    except Exception:
        logger.warning("processor_failed", processor=repr(processor), exc_info=True)
        return None
    logger.warning("processor_unsupported", processor=repr(processor))
    return None
