"""
Exception hierarchy for the cache.

All exceptions inherit from CacheError, which carries optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import Any


class CacheError(Exception):
    """Base exception for all cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class CacheClosedError(CacheError):
    """Raised when an operation is attempted on a closed cache.

    Context should include:
        - table: The cache table name
        - operation: The operation that was attempted
    """

    pass


class CacheInitializationError(CacheError):
    """Raised when the storage connection or schema cannot be set up.

    Every caller waiting on the same initialization receives the same
    instance. The underlying sqlite3/OS error is chained as __cause__.

    Context should include:
        - database: The configured database location
        - table: The cache table name
    """

    pass


class CacheEncodeError(CacheError):
    """Raised when a value cannot be encoded.

    Context should include:
        - type: The offending Python type name
        - path: Location of the value inside the structure
    """

    pass


class CacheDecodeError(CacheError):
    """Raised when stored bytes cannot be decompressed or decoded.

    Context should include:
        - offset: Byte offset where decoding failed, if known
        - reason: Short description of the failure
    """

    pass
