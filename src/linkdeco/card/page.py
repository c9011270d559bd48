"""Read-only view over a fetched HTML page.

Selectors are CSS, evaluated by BeautifulSoup's soupsieve backend.
"""

from __future__ import annotations

from bs4 import BeautifulSoup, Tag


class ParsedPage:
    def __init__(self, html: str) -> None:
        self._soup = BeautifulSoup(html, "html.parser")

    @classmethod
    def parse(cls, html: str) -> ParsedPage:
        return cls(html)

    def select(self, selector: str) -> list[Tag]:
        """Return every element matching ``selector`` in document order.

        Raises soupsieve's SelectorSyntaxError for an invalid selector.
        """
        return self._soup.select(selector)

    def select_one(self, selector: str) -> Tag | None:
        return self._soup.select_one(selector)

    @staticmethod
    def text_of(element: Tag) -> str:
        return element.get_text().strip()

    @staticmethod
    def attr_of(element: Tag, name: str) -> str | None:
        value = element.get(name)
        if value is None:
            return None
        # Multi-valued attributes such as rel or class come back as lists
        if isinstance(value, list):
            return " ".join(value)
        return value

    @staticmethod
    def html_of(element: Tag) -> str:
        """Inner HTML of ``element``."""
        return element.decode_contents()

    def detect_locale(self) -> str | None:
        """Locale declared by the page, or None.

        Checked in order: ``<html lang>``, ``<meta http-equiv="content-language">``,
        ``<meta name="language">``.
        """
        for selector, attr in (
            ("html[lang]", "lang"),
            ('meta[http-equiv="content-language" i][content]', "content"),
            ('meta[name="language" i][content]', "content"),
        ):
            element = self.select_one(selector)
            if element is not None:
                value = (self.attr_of(element, attr) or "").strip()
                if value:
                    return value
        return None
