"""Binary encoding of cache entries.

Layout (all length and count prefixes are unsigned 32-bit little-endian)::

    body_len | body
    header_count
    { key_len | key | value_count | { value_len | value } * } *
    timestamp_len | timestamp

The timestamp is a self-describing binary time value: a version byte,
signed 64-bit big-endian seconds since 0001-01-01T00:00:00Z, signed 32-bit
big-endian nanoseconds and a signed 16-bit big-endian UTC offset in minutes
(-1 for UTC). Version 2 appends one byte of offset seconds.

Backends that only accept text values store the assembled bytes as standard
base64.
"""

import base64
import binascii
import struct
from datetime import datetime, timedelta, timezone
from typing import Union

from ...constants import (
    LENGTH_PREFIX_FORMAT,
    LENGTH_PREFIX_SIZE,
    MAX_FIELD_LENGTH,
    TIMESTAMP_EPOCH,
    TIMESTAMP_UTC_OFFSET_MINUTES,
    TIMESTAMP_V1_SIZE,
    TIMESTAMP_V2_SIZE,
    TIMESTAMP_VERSION_V1,
    TIMESTAMP_VERSION_V2,
)
from ...domain.exceptions import CacheDecodeError
from ...domain.models import CacheEntry, HeaderMap

_LENGTH = struct.Struct(LENGTH_PREFIX_FORMAT)
_TIMESTAMP_BODY = struct.Struct(">qih")
_OFFSET_SECONDS = struct.Struct(">b")


def _length_prefixed(data: bytes) -> bytes:
    if len(data) > MAX_FIELD_LENGTH:
        raise ValueError(f"Field of {len(data)} bytes exceeds the 32-bit length prefix")
    return _LENGTH.pack(len(data)) + data


def encode_timestamp(instant: datetime) -> bytes:
    """Encode a timezone-aware datetime into the binary timestamp layout."""
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("Cache timestamps must be timezone-aware")

    delta = instant - TIMESTAMP_EPOCH
    seconds = delta.days * 86400 + delta.seconds
    nanoseconds = delta.microseconds * 1000

    if instant.tzinfo is timezone.utc:
        offset_minutes, offset_seconds = TIMESTAMP_UTC_OFFSET_MINUTES, 0
    else:
        total = int(instant.utcoffset().total_seconds())
        # Minutes truncate toward zero; the seconds remainder keeps the sign
        offset_minutes = abs(total) // 60 * (1 if total >= 0 else -1)
        offset_seconds = total - offset_minutes * 60
        if offset_minutes == TIMESTAMP_UTC_OFFSET_MINUTES:
            raise ValueError("A UTC offset of -1 minute cannot be represented")

    payload = _TIMESTAMP_BODY.pack(seconds, nanoseconds, offset_minutes)
    if offset_seconds:
        return (
            bytes([TIMESTAMP_VERSION_V2])
            + payload
            + _OFFSET_SECONDS.pack(offset_seconds)
        )
    return bytes([TIMESTAMP_VERSION_V1]) + payload


def decode_timestamp(data: bytes) -> datetime:
    """Decode the binary timestamp layout into a timezone-aware datetime.

    Raises:
        CacheDecodeError: On an unknown version, wrong length or an instant
            outside the range ``datetime`` can represent.
    """
    if not data:
        raise CacheDecodeError("Timestamp is empty")

    version = data[0]
    if version == TIMESTAMP_VERSION_V1:
        expected = TIMESTAMP_V1_SIZE
    elif version == TIMESTAMP_VERSION_V2:
        expected = TIMESTAMP_V2_SIZE
    else:
        raise CacheDecodeError(f"Unsupported timestamp version {version}")
    if len(data) != expected:
        raise CacheDecodeError(
            f"Timestamp version {version} needs {expected} bytes, got {len(data)}"
        )

    seconds, nanoseconds, offset_minutes = _TIMESTAMP_BODY.unpack_from(data, 1)
    if not 0 <= nanoseconds < 1_000_000_000:
        raise CacheDecodeError(f"Timestamp nanoseconds out of range: {nanoseconds}")

    try:
        instant = TIMESTAMP_EPOCH + timedelta(
            seconds=seconds, microseconds=nanoseconds // 1000
        )
        if offset_minutes == TIMESTAMP_UTC_OFFSET_MINUTES:
            return instant
        offset = offset_minutes * 60
        if version == TIMESTAMP_VERSION_V2:
            offset += _OFFSET_SECONDS.unpack_from(data, 1 + _TIMESTAMP_BODY.size)[0]
        return instant.astimezone(timezone(timedelta(seconds=offset)))
    except (OverflowError, ValueError) as exc:
        raise CacheDecodeError(f"Timestamp out of range: {exc}") from exc


def encode_entry_binary(entry: CacheEntry) -> bytes:
    """Encode an entry into the flat binary layout (no text wrapping)."""
    parts = [_length_prefixed(entry.body), _LENGTH.pack(len(entry.headers))]
    for name, values in entry.headers.items():
        parts.append(_length_prefixed(name.encode("utf-8")))
        parts.append(_LENGTH.pack(len(values)))
        for value in values:
            parts.append(_length_prefixed(value.encode("utf-8")))
    parts.append(_length_prefixed(encode_timestamp(entry.expires_at)))
    return b"".join(parts)


class _Reader:
    """Bounds-checked cursor over an encoded entry."""

    def __init__(self, data: bytes):
        self._data = memoryview(data)
        self.offset = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset

    def read_length(self, what: str) -> int:
        if self.remaining < LENGTH_PREFIX_SIZE:
            raise CacheDecodeError(f"Truncated {what} prefix", offset=self.offset)
        (value,) = _LENGTH.unpack_from(self._data, self.offset)
        self.offset += LENGTH_PREFIX_SIZE
        return value

    def read_bytes(self, what: str) -> bytes:
        length = self.read_length(what)
        if length > self.remaining:
            raise CacheDecodeError(
                f"{what} claims {length} bytes but only {self.remaining} remain",
                offset=self.offset,
            )
        chunk = bytes(self._data[self.offset : self.offset + length])
        self.offset += length
        return chunk

    def read_text(self, what: str) -> str:
        start = self.offset
        raw = self.read_bytes(what)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CacheDecodeError(f"{what} is not valid UTF-8", offset=start) from exc


def decode_entry_binary(data: bytes) -> CacheEntry:
    """Decode the flat binary layout.

    Raises:
        CacheDecodeError: If the data is truncated, claims more bytes than it
            holds, carries a malformed timestamp or has trailing bytes.
    """
    reader = _Reader(data)
    body = reader.read_bytes("body")

    headers: HeaderMap = {}
    header_count = reader.read_length("header count")
    for _ in range(header_count):
        name = reader.read_text("header name")
        value_count = reader.read_length("header value count")
        # Each value needs at least its own length prefix
        if value_count * LENGTH_PREFIX_SIZE > reader.remaining:
            raise CacheDecodeError(
                f"Header {name!r} claims {value_count} values", offset=reader.offset
            )
        headers[name] = [reader.read_text("header value") for _ in range(value_count)]

    expires_at = decode_timestamp(reader.read_bytes("timestamp"))
    if reader.remaining:
        raise CacheDecodeError(
            f"{reader.remaining} trailing bytes after entry", offset=reader.offset
        )
    return CacheEntry(body=body, headers=headers, expires_at=expires_at)


def encode_entry(entry: CacheEntry, text_safe: bool = True) -> bytes:
    """Encode an entry, base64-wrapped unless ``text_safe`` is false."""
    raw = encode_entry_binary(entry)
    return base64.b64encode(raw) if text_safe else raw


def decode_entry(data: Union[bytes, str], text_safe: bool = True) -> CacheEntry:
    """Reverse :func:`encode_entry`.

    Raises:
        CacheDecodeError: On invalid base64 or a malformed binary payload.
    """
    if isinstance(data, str):
        try:
            data = data.encode("ascii")
        except UnicodeEncodeError as exc:
            raise CacheDecodeError("Encoded entry is not ASCII") from exc
    if text_safe:
        try:
            data = base64.b64decode(data, validate=True)
        except binascii.Error as exc:
            raise CacheDecodeError(f"Invalid base64 payload: {exc}") from exc
    return decode_entry_binary(data)
