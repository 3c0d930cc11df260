"""
Compression policy for stored values.

Values are gzip-compressed only when compression is enabled for the write,
the encoded payload is at least COMPRESSION_MIN_LENGTH bytes, and the
compressed form is strictly smaller. Reads are driven by the per-row flag.
"""

from __future__ import annotations

import asyncio
import gzip
import zlib

from sqlcache.exceptions import CacheDecodeError

COMPRESSION_MIN_LENGTH = 1024


def resolve_compression(override: bool | None, default: bool | None) -> bool:
    """Pick the effective compression flag for one write.

    Args:
        override: Per-call setting, if given.
        default: Instance default, if configured.

    Returns:
        The per-call override, else the default, else False.
    """
    if override is not None:
        return override
    if default is not None:
        return default
    return False


async def compress_value(encoded: bytes, enabled: bool) -> tuple[bytes, bool]:
    """Apply the compression policy to encoded bytes.

    Args:
        encoded: Output of the codec.
        enabled: Effective compression flag from resolve_compression().

    Returns:
        Tuple of (bytes to store, compressed flag to persist).
    """
    if not enabled or len(encoded) < COMPRESSION_MIN_LENGTH:
        return encoded, False

    compressed = await asyncio.to_thread(gzip.compress, encoded)
    # Incompressible input: never store something larger than the original
    if len(compressed) >= len(encoded):
        return encoded, False

    return compressed, True


async def decompress_value(stored: bytes, compressed: bool) -> bytes:
    """Undo compress_value() according to the persisted flag.

    Raises:
        CacheDecodeError: If the stored bytes are not valid gzip data.
    """
    if not compressed:
        return stored

    try:
        return await asyncio.to_thread(gzip.decompress, stored)
    except (OSError, EOFError, zlib.error) as e:
        raise CacheDecodeError(
            "Failed to decompress cache value",
            {"reason": str(e), "size": len(stored)},
        ) from e
