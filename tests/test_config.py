"""
Tests for configuration module.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from sqlcache.config import CacheConfig, clear_settings_cache, get_settings


class TestCacheConfigValidation:
    """Tests for CacheConfig validation."""

    def test_defaults(self) -> None:
        config = CacheConfig(database=":memory:")

        assert config.default_ttl_ms is None
        assert config.max_items is None
        assert config.compress is False
        assert config.table_name == "cache"
        assert config.sweep_interval_ms == 1000
        assert config.sweep_debounce_ms == 100
        assert config.is_memory
        assert config.database_path is None

    def test_database_is_required(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            CacheConfig(_env_file=None)
        assert "database" in str(exc_info.value)

    def test_path_database(self, temp_dir: Path) -> None:
        config = CacheConfig(database=temp_dir / "cache.db")
        assert config.database == str(temp_dir / "cache.db")
        assert config.database_path == temp_dir / "cache.db"
        assert not config.is_memory

    @pytest.mark.parametrize(
        "field",
        ["default_ttl_ms", "max_items", "sweep_interval_ms"],
    )
    @pytest.mark.parametrize("value", [0, -5])
    def test_positive_fields(self, field: str, value: int) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(database=":memory:", **{field: value})

    def test_debounce_may_be_zero(self) -> None:
        assert CacheConfig(database=":memory:", sweep_debounce_ms=0).sweep_debounce_ms == 0

    def test_empty_table_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CacheConfig(database=":memory:", table_name="")

    def test_config_is_frozen(self) -> None:
        config = CacheConfig(database=":memory:")
        with pytest.raises(ValidationError):
            config.max_items = 10  # type: ignore[misc]


class TestEnvironment:
    """Loading settings from SQLCACHE_* variables."""

    def test_settings_loads_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SQLCACHE_DATABASE", "/tmp/env.db")
        monkeypatch.setenv("SQLCACHE_MAX_ITEMS", "50")
        monkeypatch.setenv("SQLCACHE_COMPRESS", "true")
        monkeypatch.setenv("SQLCACHE_DEFAULT_TTL_MS", "60000")

        settings = get_settings()

        assert settings.database == "/tmp/env.db"
        assert settings.max_items == 50
        assert settings.compress is True
        assert settings.default_ttl_ms == 60000

    def test_explicit_values_override_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SQLCACHE_TABLE_NAME", "from_env")
        config = CacheConfig(database=":memory:", table_name="explicit")
        assert config.table_name == "explicit"

    def test_dotenv_file(self, temp_dir: Path) -> None:
        (temp_dir / ".env").write_text("SQLCACHE_DATABASE=:memory:\nSQLCACHE_MAX_ITEMS=7\n")
        settings = get_settings()
        assert settings.max_items == 7

    def test_settings_are_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SQLCACHE_DATABASE", ":memory:")
        assert get_settings() is get_settings()

        clear_settings_cache()
        monkeypatch.setenv("SQLCACHE_TABLE_NAME", "other")
        assert get_settings().table_name == "other"

    def test_invalid_env_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SQLCACHE_DATABASE", ":memory:")
        monkeypatch.setenv("SQLCACHE_MAX_ITEMS", "lots")
        with pytest.raises(ValidationError):
            get_settings()
