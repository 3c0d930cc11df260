"""
Pytest configuration and fixtures for cache tests.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import AsyncGenerator, Callable, Generator

import pytest

from sqlcache.cache import SQLiteCache
from sqlcache.config import clear_settings_cache
from sqlcache.logging import ROOT_LOGGER_NAME


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for database files."""
    return tmp_path


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    """Provide a fresh SQLite file path."""
    return temp_dir / "cache.db"


@pytest.fixture(autouse=True)
def isolated_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[None, None, None]:
    """Strip SQLCACHE_* variables and any .env file from the test environment."""
    for name in list(os.environ):
        if name.startswith("SQLCACHE_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def quiet_logging() -> Generator[None, None, None]:
    """Undo any setup_logging() call made by a test."""
    yield
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in package_logger.handlers:
        handler.close()
    package_logger.handlers.clear()
    package_logger.addHandler(logging.NullHandler())
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


@pytest.fixture
async def make_cache() -> AsyncGenerator[Callable[..., SQLiteCache], None]:
    """Factory for caches that are closed automatically after the test."""
    caches: list[SQLiteCache] = []

    def factory(**options: object) -> SQLiteCache:
        options.setdefault("database", ":memory:")
        cache = SQLiteCache(**options)
        caches.append(cache)
        return cache

    yield factory

    for cache in caches:
        await cache.close()


@pytest.fixture
async def cache(make_cache: Callable[..., SQLiteCache]) -> SQLiteCache:
    """Provide an in-memory cache with default options."""
    return make_cache()

