"""
Base classes for caching.

CacheProtocol is the abstract interface implemented by SQLiteCache. Code
that only needs get/set/delete/clear can depend on it instead of the
concrete class.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from sqlcache.types import MISSING


class CacheProtocol(ABC):
    """Abstract interface for cache implementations."""

    @abstractmethod
    async def get(self, key: str, default: Any = MISSING) -> Any:
        """Get a value from the cache."""
        ...

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Any,
        *,
        ttl_ms: int | None = None,
        compress: bool | None = None,
    ) -> None:
        """Set a value in the cache."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a value from the cache."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every value from the cache."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists in the cache."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by the cache."""
        ...
