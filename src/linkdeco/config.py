"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (LINKDECO__CACHE__BACKEND=filesystem)
  2. linkdeco.yaml          (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_CACHE_DIR = platformdirs.user_cache_dir("linkdeco")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_CACHE_DIR) / "fetch-cache.db")


def _find_config_file() -> str | None:
    """Return the path of the first linkdeco.yaml found, or None."""
    candidates = [
        Path("linkdeco.yaml"),
        Path(platformdirs.user_config_dir("linkdeco")) / "linkdeco.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class FetcherSettings(BaseModel):
    user_agent: str = "linkdeco/1.0"
    timeout_seconds: float = 60.0
    max_connections: int = 10


class CacheSettings(BaseModel):
    enabled: bool = True
    backend: Literal["memory", "filesystem", "sqlite"] = "sqlite"
    ttl_seconds: float = 60 * 60
    failure_ttl_seconds: float = 5 * 60
    cache_failures: bool = True
    dir: str = _DEFAULT_CACHE_DIR
    db_path: str = _DEFAULT_DB_PATH
    compression: bool = True


class OEmbedSettings(BaseModel):
    max_redirects: int = 5
    timeout_each_redirect_seconds: float = 10.0
    # None uses the bundled providers.json snapshot
    providers_path: str | None = None
    use_metadata_url_link: bool = False
    # Follow HEAD redirects so short links match their provider
    resolve_redirects: bool = True


class CardSettings(BaseModel):
    use_metadata_url_link: bool = False
    # Try the oEmbed provider table before scraping the page
    oembed_fallback: bool = False
    # Product page rules for amazon.com and amazon.co.jp
    amazon_rules: bool = True


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: LINKDECO__FETCHER__TIMEOUT_SECONDS=30
        env_prefix="LINKDECO__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    fetcher: FetcherSettings = FetcherSettings()
    cache: CacheSettings = CacheSettings()
    oembed: OEmbedSettings = OEmbedSettings()
    card: CardSettings = CardSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
