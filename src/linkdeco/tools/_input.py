from __future__ import annotations

from pydantic import ValidationError

from linkdeco.errors import InvalidUrlError
from linkdeco.models.tools import UrlInput


def validate_url(url: str) -> str:
    """Return the normalised URL or raise InvalidUrlError."""
    try:
        return UrlInput(url=url).url
    except ValidationError as exc:
        raise InvalidUrlError(url) from exc
