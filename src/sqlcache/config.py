"""
Configuration management using pydantic-settings.

Cache options can be passed explicitly or loaded from SQLCACHE_* environment
variables and .env files. Validation happens once, at construction.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MEMORY_DATABASE = ":memory:"


class CacheConfig(BaseSettings):
    """Options for one cache instance.

    Required:
        database: SQLite file path, or ":memory:" for an in-memory store

    Optional:
        default_ttl_ms: Default time-to-live in milliseconds (see note below)
        max_items: Capacity bound; least recently used entries are evicted past it
        compress: Default gzip compression flag for writes
        table_name: Name of the cache table
        sweep_interval_ms: Period of the background eviction timer
        sweep_debounce_ms: Window during which sweep requests are coalesced

    Note:
        default_ttl_ms is validated and kept on the config but is not applied
        to writes that omit ttl_ms. Only a per-call ttl_ms sets an expiry.

        Explicit keyword arguments take priority, but every field left out is
        filled from SQLCACHE_* environment variables and .env before falling
        back to its default.
    """

    model_config = SettingsConfigDict(
        env_prefix="SQLCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    database: str = Field(
        ...,
        description="SQLite database path or ':memory:'",
    )
    default_ttl_ms: int | None = Field(
        default=None, gt=0, description="Default time-to-live in milliseconds"
    )
    max_items: int | None = Field(
        default=None, gt=0, description="Maximum number of cached items"
    )
    compress: bool = Field(default=False, description="Compress values on write")
    table_name: str = Field(
        default="cache", min_length=1, description="Name of the cache table"
    )
    sweep_interval_ms: int = Field(
        default=1000, gt=0, description="Background eviction period in milliseconds"
    )
    sweep_debounce_ms: int = Field(
        default=100, ge=0, description="Sweep coalescing window in milliseconds"
    )

    @field_validator("database", mode="before")
    @classmethod
    def coerce_database_path(cls, v: Any) -> Any:
        """Accept pathlib paths for the database location."""
        if isinstance(v, Path):
            return str(v)
        return v

    @property
    def is_memory(self) -> bool:
        """Whether the store lives only in memory."""
        return self.database == MEMORY_DATABASE

    @property
    def database_path(self) -> Path | None:
        """Filesystem path of the store, or None for in-memory stores."""
        if self.is_memory:
            return None
        return Path(self.database)


@lru_cache
def get_settings() -> CacheConfig:
    """Get cached settings singleton.

    Returns:
        CacheConfig loaded from the environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return CacheConfig()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
