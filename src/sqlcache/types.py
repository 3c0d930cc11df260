"""
Core types for the cache.

This module defines:
- MISSING: the explicit "absent" marker, distinct from None
- CacheEntry: frozen snapshot of a stored row
- SweepResult: outcome of one eviction cycle
- Helper functions for timestamps
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Final


class _MissingType:
    """Type of the MISSING sentinel. There is exactly one instance."""

    _instance: _MissingType | None = None

    def __new__(cls) -> _MissingType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "MISSING"


MISSING: Final = _MissingType()


def now_ms() -> int:
    """Get current wall-clock time as epoch milliseconds."""
    return time.time_ns() // 1_000_000


@dataclass(frozen=True)
class CacheEntry:
    """A stored row, as persisted.

    ``value`` holds the encoded and possibly compressed bytes, not the
    decoded Python value.
    """

    key: str
    value: bytes
    expires_at: int | None
    last_access: int
    compressed: bool

    def is_expired(self, now: int | None = None) -> bool:
        """Check whether the entry is past its expiry at ``now`` (epoch ms)."""
        if self.expires_at is None:
            return False
        return self.expires_at <= (now if now is not None else now_ms())


@dataclass(frozen=True)
class SweepResult:
    """Rows removed by one eviction cycle."""

    expired: int = 0
    evicted: int = 0

    @property
    def total(self) -> int:
        return self.expired + self.evicted
