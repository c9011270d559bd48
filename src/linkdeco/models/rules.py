"""Declarative scraping rule types.

Rules are plain frozen dataclasses rather than pydantic models because a
processor may be an arbitrary callable. A processor is a small tagged union:
either a :class:`NamedProcessor` dispatched through the built-in registry in
``linkdeco.card.processors`` or a :class:`FunctionProcessor` wrapping a callable.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from linkdeco.card.page import ParsedPage

ExtractedMetadata = dict[str, str | list[str]]
ProcessorResult = str | list[str] | None

ProcessorKind = Literal[
    "resolve_url",
    "strip_prefix",
    "currency",
    "regex",
    "first",
    "filter",
    "slice",
    "host",
    "source_url",
]


@dataclass(frozen=True)
class ProcessorContext:
    """What a processor may look at besides the raw values."""

    page: ParsedPage
    url: str
    locale: str | None = None


@dataclass(frozen=True)
class NamedProcessor:
    kind: ProcessorKind
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


@dataclass(frozen=True)
class FunctionProcessor:
    fn: Callable[[list[str], ProcessorContext], ProcessorResult]


Processor = NamedProcessor | FunctionProcessor


@dataclass(frozen=True)
class SelectorRule:
    """One way of extracting a field.

    ``selector`` may be a single CSS selector or an ordered list tried in
    turn. ``None`` skips the page lookup and feeds the source URL to the
    processor as the only raw value.
    """

    selector: str | tuple[str, ...] | None = None
    method: Literal["text", "attr", "html"] = "text"
    attr: str | None = None
    multiple: bool = False
    processor: Processor | None = None

    def __post_init__(self) -> None:
        if isinstance(self.selector, list):
            object.__setattr__(self, "selector", tuple(self.selector))

    @property
    def selectors(self) -> tuple[str, ...]:
        if self.selector is None:
            return ()
        if isinstance(self.selector, str):
            return (self.selector,)
        return self.selector


@dataclass(frozen=True)
class FieldSpec:
    rules: tuple[SelectorRule, ...]
    required: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))


@dataclass(frozen=True)
class ScrapingRule:
    """Site-specific field extraction rules, selected by URL pattern."""

    patterns: tuple[str, ...]
    fields: Mapping[str, FieldSpec]
    # Explicit locale, or "auto"/None to read it from the page
    locale: str | None = None
    # Seeded into the result as ``siteName``
    site_name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "patterns", tuple(p.strip() for p in self.patterns if p.strip()))
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
