"""
sqlcache: embedded key-value cache on SQLite.

Adds time-based expiration, least-recently-used eviction, optional gzip
compression and structured-value encoding on top of one SQLite table.
"""

from sqlcache.cache import SQLiteCache
from sqlcache.config import CacheConfig
from sqlcache.exceptions import (
    CacheClosedError,
    CacheDecodeError,
    CacheEncodeError,
    CacheError,
    CacheInitializationError,
)
from sqlcache.types import MISSING, CacheEntry

__all__ = [
    "MISSING",
    "CacheClosedError",
    "CacheConfig",
    "CacheDecodeError",
    "CacheEncodeError",
    "CacheEntry",
    "CacheError",
    "CacheInitializationError",
    "SQLiteCache",
]
