from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, field_validator

_MAX_URL_LENGTH = 2048


class UrlInput(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("url must not be empty")
        if len(v) > _MAX_URL_LENGTH:
            raise ValueError(f"url must be at most {_MAX_URL_LENGTH} characters")
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v


class RenderOutput(BaseModel):
    """Markup produced by render_card or render_embed."""

    url: str
    kind: Literal["card", "oembed"]
    html: str


class ExtractMetadataOutput(BaseModel):
    url: str
    site_name: str | None  # Name of the matched site rule, None for the OGP fallback
    metadata: dict[str, str | list[str]]


class ResolveEndpointOutput(BaseModel):
    url: str
    endpoint: str
    matched_via: Literal["scheme", "discovery"]
