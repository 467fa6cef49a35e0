"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (DEXSYNC__CATALOG__PAGE_SIZE=50)
  2. dexsync.yaml           (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("dexsync")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "favorites.db")


def _find_config_file() -> str | None:
    """Return the path of the first dexsync.yaml found, or None."""
    candidates = [
        Path("dexsync.yaml"),
        Path(platformdirs.user_config_dir("dexsync")) / "dexsync.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "127.0.0.1"
    port: int = 8080


class ApiSettings(BaseModel):
    base_url: str = "https://pokeapi.co/api/v2"
    timeout_seconds: float = 30.0
    user_agent: str = "dexsync/1.0"


class CatalogSettings(BaseModel):
    page_size: int = Field(default=150, ge=1)
    # Upper bound for the one-shot search index; must exceed the remote catalog size
    full_index_limit: int = Field(default=2000, ge=1)


class CacheSettings(BaseModel):
    """Staleness windows per query category, plus eviction timing (seconds)."""

    page_stale_seconds: float = 5 * 60
    slice_stale_seconds: float = 0
    index_stale_seconds: float = 24 * 60 * 60
    detail_stale_seconds: float = 10 * 60
    favorites_stale_seconds: float = 0
    eviction_seconds: float = 5 * 60
    index_eviction_seconds: float = 24 * 60 * 60
    sweep_interval_seconds: float = 60


class FavoritesSettings(BaseModel):
    db_path: str = _DEFAULT_DB_PATH


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: DEXSYNC__SERVER__PORT=9090
        env_prefix="DEXSYNC__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    api: ApiSettings = ApiSettings()
    catalog: CatalogSettings = CatalogSettings()
    cache: CacheSettings = CacheSettings()
    favorites: FavoritesSettings = FavoritesSettings()
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
