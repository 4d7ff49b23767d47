"""
MiCa Configuration

Settings are loaded from:
1. Environment variables (prefixed with MICA_)
2. ~/.mica/.env file

Key settings:
- MICA_DATABASE_PATH: Local SQLite database file
- MICA_VIEW_FLUSH_INTERVAL: Minimum seconds between camera writes
- MICA_LOG_LEVEL: Logging level used by the command line front end
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".mica"


class Settings(BaseSettings):
    """MiCa store settings."""

    app_name: str = "MiCa"

    # Database
    database_path: Path = Field(
        default=DEFAULT_HOME / "mica.db",
        description="SQLite file holding spaces, nodes, edges and view state",
    )

    # Camera auto-persistence
    view_flush_interval: float = Field(
        default=0.4,
        gt=0,
        description="Minimum seconds between two persisted camera updates",
    )

    # Search
    search_limit: int = Field(default=8, ge=1)
    snippet_length: int = Field(default=120, ge=1)

    log_level: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix="MICA_",
        env_file=DEFAULT_HOME / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("database_path", mode="before")
    @classmethod
    def _expand_path(cls, value: str | Path) -> Path:
        return Path(value).expanduser()

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache settings."""
    return Settings()


def reload_settings() -> Settings:
    """Clear cached settings (useful for tests) and reload."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings", "DEFAULT_HOME"]
