"""
Tagged binary codec for cached values.

Every value is written as one tag byte followed by a fixed payload layout.
Integers in headers are big-endian.

    0x00  None
    0x01  MISSING
    0x02  False
    0x03  True
    0x04  int       u32 length, signed big-endian magnitude
    0x05  float     IEEE-754 double
    0x06  str       u32 length, UTF-8 bytes
    0x07  bytes     u32 length, raw bytes
    0x08  list      u32 count, items
    0x09  dict      u32 count, (u32 length + UTF-8 key, value) pairs
    0x0A  datetime  i64 microseconds since epoch, u8 tz flag, [i32 UTC offset seconds]
    0x0B  date      i32 proleptic Gregorian ordinal

Tuples decode as lists and bytearray/memoryview decode as bytes. Mapping
keys must be strings. Containers nest at most MAX_DEPTH levels deep, which
also rejects self-referencing values. Decoding rejects unknown tags,
truncated input, trailing bytes and over-deep nesting.
"""

from __future__ import annotations

import struct
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlcache.exceptions import CacheDecodeError, CacheEncodeError
from sqlcache.types import MISSING

TAG_NONE = 0x00
TAG_MISSING = 0x01
TAG_FALSE = 0x02
TAG_TRUE = 0x03
TAG_INT = 0x04
TAG_FLOAT = 0x05
TAG_STR = 0x06
TAG_BYTES = 0x07
TAG_LIST = 0x08
TAG_DICT = 0x09
TAG_DATETIME = 0x0A
TAG_DATE = 0x0B

MAX_DEPTH = 200

_U32 = struct.Struct(">I")
_I32 = struct.Struct(">i")
_I64 = struct.Struct(">q")
_F64 = struct.Struct(">d")

_EPOCH_NAIVE = datetime(1970, 1, 1)
_EPOCH_UTC = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


def encode(value: Any) -> bytes:
    """Encode a value into the tagged binary format.

    Args:
        value: None, MISSING, bool, int, float, str, bytes-like, list/tuple,
            dict with str keys, datetime or date, nested up to MAX_DEPTH levels.

    Returns:
        Encoded bytes.

    Raises:
        CacheEncodeError: If the value (or anything nested in it) has an
            unsupported type, or containers nest deeper than MAX_DEPTH.
    """
    out = bytearray()
    _encode_into(out, value, "$", 0)
    return bytes(out)


def decode(data: bytes) -> Any:
    """Decode bytes produced by encode().

    Raises:
        CacheDecodeError: If the input is malformed.
    """
    reader = _Reader(data)
    value = reader.read_value()
    if reader.offset != len(reader.data):
        raise CacheDecodeError(
            "Trailing bytes after encoded value",
            {"offset": reader.offset, "reason": "trailing data"},
        )
    return value


def _encode_into(out: bytearray, value: Any, path: str, depth: int) -> None:
    if value is None:
        out.append(TAG_NONE)
    elif value is MISSING:
        out.append(TAG_MISSING)
    # bool before int: bool is an int subclass
    elif isinstance(value, bool):
        out.append(TAG_TRUE if value else TAG_FALSE)
    elif isinstance(value, int):
        length = (value.bit_length() + 8) // 8
        out.append(TAG_INT)
        out += _U32.pack(length)
        out += value.to_bytes(length, "big", signed=True)
    elif isinstance(value, float):
        out.append(TAG_FLOAT)
        out += _F64.pack(value)
    elif isinstance(value, str):
        out.append(TAG_STR)
        _write_text(out, value, path)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        out.append(TAG_BYTES)
        out += _U32.pack(len(raw))
        out += raw
    elif isinstance(value, (list, tuple, dict)) and depth >= MAX_DEPTH:
        raise CacheEncodeError(
            "Value is nested too deeply or contains itself",
            {"type": type(value).__name__, "path": path, "max_depth": MAX_DEPTH},
        )
    elif isinstance(value, (list, tuple)):
        out.append(TAG_LIST)
        out += _U32.pack(len(value))
        for index, item in enumerate(value):
            _encode_into(out, item, f"{path}[{index}]", depth + 1)
    elif isinstance(value, dict):
        out.append(TAG_DICT)
        out += _U32.pack(len(value))
        for key, item in value.items():
            if not isinstance(key, str):
                raise CacheEncodeError(
                    "Mapping keys must be strings",
                    {"type": type(key).__name__, "path": path},
                )
            _write_text(out, key, path)
            _encode_into(out, item, f"{path}.{key}", depth + 1)
    # datetime before date: datetime is a date subclass
    elif isinstance(value, datetime):
        out.append(TAG_DATETIME)
        offset = value.utcoffset()
        if offset is None:
            out += _I64.pack((value - _EPOCH_NAIVE) // _MICROSECOND)
            out.append(0)
        else:
            out += _I64.pack((value - _EPOCH_UTC) // _MICROSECOND)
            out.append(1)
            out += _I32.pack(int(offset.total_seconds()))
    elif isinstance(value, date):
        out.append(TAG_DATE)
        out += _I32.pack(value.toordinal())
    else:
        raise CacheEncodeError(
            "Unsupported value type",
            {"type": type(value).__name__, "path": path},
        )


def _write_text(out: bytearray, text: str, path: str) -> None:
    try:
        raw = text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise CacheEncodeError(
            "String is not valid UTF-8", {"type": "str", "path": path}
        ) from e
    out += _U32.pack(len(raw))
    out += raw


class _Reader:
    """Cursor over the encoded bytes."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        self.offset = 0

    def _fail(self, reason: str) -> CacheDecodeError:
        return CacheDecodeError(
            "Malformed cache value", {"offset": self.offset, "reason": reason}
        )

    def take(self, n: int) -> bytes:
        end = self.offset + n
        if end > len(self.data):
            raise self._fail(f"truncated: needed {n} bytes")
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def unpack(self, fmt: struct.Struct) -> Any:
        return fmt.unpack(self.take(fmt.size))[0]

    def read_text(self) -> str:
        raw = self.take(self.unpack(_U32))
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise self._fail("invalid UTF-8") from e

    def read_value(self, depth: int = 0) -> Any:
        tag = self.take(1)[0]

        if tag == TAG_NONE:
            return None
        if tag == TAG_MISSING:
            return MISSING
        if tag == TAG_FALSE:
            return False
        if tag == TAG_TRUE:
            return True
        if tag == TAG_INT:
            return int.from_bytes(self.take(self.unpack(_U32)), "big", signed=True)
        if tag == TAG_FLOAT:
            return self.unpack(_F64)
        if tag == TAG_STR:
            return self.read_text()
        if tag == TAG_BYTES:
            return self.take(self.unpack(_U32))
        if tag in (TAG_LIST, TAG_DICT) and depth >= MAX_DEPTH:
            self.offset -= 1
            raise self._fail(f"nesting deeper than {MAX_DEPTH} levels")
        if tag == TAG_LIST:
            count = self.unpack(_U32)
            return [self.read_value(depth + 1) for _ in range(count)]
        if tag == TAG_DICT:
            count = self.unpack(_U32)
            result: dict[str, Any] = {}
            for _ in range(count):
                key = self.read_text()
                result[key] = self.read_value(depth + 1)
            return result
        if tag == TAG_DATETIME:
            return self._read_datetime()
        if tag == TAG_DATE:
            try:
                return date.fromordinal(self.unpack(_I32))
            except ValueError as e:
                raise self._fail("date out of range") from e

        self.offset -= 1
        raise self._fail(f"unknown tag 0x{tag:02x}")

    def _read_datetime(self) -> datetime:
        micros = self.unpack(_I64)
        aware = self.take(1)[0]
        try:
            if not aware:
                return _EPOCH_NAIVE + timedelta(microseconds=micros)
            offset = timedelta(seconds=self.unpack(_I32))
            return (_EPOCH_UTC + timedelta(microseconds=micros)).astimezone(
                timezone(offset)
            )
        except (OverflowError, ValueError) as e:
            raise self._fail("datetime out of range") from e
