from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator


class OEmbedEndpoint(BaseModel):
    url: str
    schemes: list[str] = []
    discovery: bool = False
    formats: list[str] = []


class OEmbedProvider(BaseModel):
    """Single entry of an oEmbed providers.json table."""

    provider_name: str
    provider_url: str
    endpoints: list[OEmbedEndpoint] = []


class OEmbedResponse(BaseModel):
    """JSON document returned by an oEmbed endpoint."""

    # Providers routinely add their own keys; keep them.
    model_config = ConfigDict(extra="allow")

    # photo, video, link or rich; anything else renders the fallback
    type: str = "link"
    version: str = "1.0"
    title: str | None = None
    author_name: str | None = None
    author_url: str | None = None
    provider_name: str | None = None
    provider_url: str | None = None
    cache_age: int | None = None
    thumbnail_url: str | None = None
    thumbnail_width: int | None = None
    thumbnail_height: int | None = None

    # photo
    url: str | None = None
    width: int | str | None = None
    height: int | str | None = None

    # video / rich
    html: str | None = None

    web_page: str | None = None

    @field_validator("version", mode="before")
    @classmethod
    def version_as_text(cls, v: object) -> object:
        # Some providers send the version as a JSON number
        if isinstance(v, int | float) and not isinstance(v, bool):
            return str(v)
        return v
