"""Tests for the binary cache-entry codec."""

import base64
import struct
from datetime import datetime, timedelta, timezone

import pytest

from gleamproxy.application.cache.codec import (
    decode_entry,
    decode_entry_binary,
    decode_timestamp,
    encode_entry,
    encode_entry_binary,
    encode_timestamp,
)
from gleamproxy.constants import ZERO_INSTANT
from gleamproxy.domain.exceptions import CacheDecodeError
from gleamproxy.domain.models import CacheEntry

ZERO_TIMESTAMP = b"\x01" + b"\x00" * 12 + b"\xff\xff"
EMPTY_ENTRY = (
    b"\x00\x00\x00\x00"  # body length
    + b"\x00\x00\x00\x00"  # header count
    + b"\x0f\x00\x00\x00"  # timestamp length
    + ZERO_TIMESTAMP
)


def _headers(count: int):
    return {f"X-Header-{i}": [f"value-{i}", f"other-{i}"] for i in range(count)}


class TestTimestamp:
    """Binary timestamp layout."""

    def test_zero_instant_layout(self):
        assert encode_timestamp(ZERO_INSTANT) == ZERO_TIMESTAMP

    def test_zero_instant_decodes(self):
        assert decode_timestamp(ZERO_TIMESTAMP) == ZERO_INSTANT

    def test_utc_instant_round_trip(self):
        instant = datetime(2024, 5, 17, 13, 45, 12, 123456, tzinfo=timezone.utc)
        data = encode_timestamp(instant)
        assert len(data) == 15
        assert data[-2:] == b"\xff\xff"
        decoded = decode_timestamp(data)
        assert decoded == instant
        assert decoded.utcoffset() == timedelta(0)

    def test_offset_in_minutes_is_kept(self):
        tz = timezone(timedelta(hours=5, minutes=30))
        instant = datetime(2024, 1, 2, 3, 4, 5, tzinfo=tz)
        data = encode_timestamp(instant)
        assert data[0] == 1
        assert struct.unpack(">h", data[13:15])[0] == 330
        decoded = decode_timestamp(data)
        assert decoded == instant
        assert decoded.utcoffset() == timedelta(hours=5, minutes=30)

    def test_offset_with_seconds_uses_version_two(self):
        tz = timezone(-timedelta(minutes=4, seconds=56))
        instant = datetime(1883, 11, 18, 12, 0, tzinfo=tz)
        data = encode_timestamp(instant)
        assert data[0] == 2
        assert len(data) == 16
        decoded = decode_timestamp(data)
        assert decoded == instant
        assert decoded.utcoffset() == -timedelta(minutes=4, seconds=56)

    def test_seconds_are_counted_from_year_one(self):
        instant = datetime(1970, 1, 1, tzinfo=timezone.utc)
        seconds = struct.unpack(">q", encode_timestamp(instant)[1:9])[0]
        assert seconds == 62135596800

    def test_naive_datetime_rejected(self):
        with pytest.raises(ValueError):
            encode_timestamp(datetime(2024, 1, 1))

    @pytest.mark.parametrize(
        "data",
        [
            b"",
            b"\x03" + b"\x00" * 14,
            b"\x01" + b"\x00" * 10,
            b"\x02" + b"\x00" * 14,
        ],
        ids=["empty", "unknown-version", "short-v1", "short-v2"],
    )
    def test_malformed_timestamps(self, data):
        with pytest.raises(CacheDecodeError):
            decode_timestamp(data)

    def test_nanoseconds_out_of_range(self):
        data = b"\x01" + struct.pack(">qih", 0, 1_000_000_000, -1)
        with pytest.raises(CacheDecodeError):
            decode_timestamp(data)


class TestEntryCodec:
    """Entry encoding and decoding."""

    def test_empty_entry_layout(self):
        entry = CacheEntry(body=b"")
        assert encode_entry_binary(entry) == EMPTY_ENTRY
        assert encode_entry(entry) == base64.b64encode(EMPTY_ENTRY)

    def test_known_entry_layout(self):
        entry = CacheEntry(body=b"abc", headers={"X-Test": ["v1"]})
        expected = (
            b"\x03\x00\x00\x00abc"
            + b"\x01\x00\x00\x00"
            + b"\x06\x00\x00\x00X-Test"
            + b"\x01\x00\x00\x00"
            + b"\x02\x00\x00\x00v1"
            + b"\x0f\x00\x00\x00"
            + ZERO_TIMESTAMP
        )
        assert encode_entry_binary(entry) == expected

    @pytest.mark.parametrize("body_size", [0, 1, 64 * 1024])
    @pytest.mark.parametrize("header_count", [0, 1, 5])
    def test_round_trip(self, body_size, header_count):
        entry = CacheEntry(
            body=bytes(i % 256 for i in range(body_size)),
            headers=_headers(header_count),
            expires_at=datetime(2030, 6, 1, 8, 30, 0, 500, tzinfo=timezone.utc),
        )
        assert decode_entry(encode_entry(entry)) == entry

    def test_round_trip_without_text_wrapping(self):
        entry = CacheEntry(body=b"\x00\xffbinary", headers={"A": ["1"]})
        raw = encode_entry(entry, text_safe=False)
        assert raw == encode_entry_binary(entry)
        assert decode_entry(raw, text_safe=False) == entry

    def test_decode_accepts_str(self):
        entry = CacheEntry(body=b"hello", headers={"Content-Type": ["text/plain"]})
        assert decode_entry(encode_entry(entry).decode("ascii")) == entry

    def test_header_order_and_repeats_preserved(self):
        headers = {"Set-Cookie": ["a=1", "b=2", "a=1"], "Vary": [], "X-Z": ["z"]}
        decoded = decode_entry_binary(
            encode_entry_binary(CacheEntry(body=b"", headers=headers))
        )
        assert list(decoded.headers) == ["Set-Cookie", "Vary", "X-Z"]
        assert decoded.headers["Set-Cookie"] == ["a=1", "b=2", "a=1"]
        assert decoded.headers["Vary"] == []

    def test_utf8_header_values(self):
        entry = CacheEntry(body=b"", headers={"X-Name": ["café"]})
        assert decode_entry(encode_entry(entry)).headers["X-Name"] == ["café"]


class TestDecodeErrors:
    """Malformed input never decodes into an entry."""

    def test_truncated_at_every_offset(self):
        data = encode_entry_binary(CacheEntry(body=b"abc", headers={"X-Test": ["v1"]}))
        for cut in range(len(data)):
            with pytest.raises(CacheDecodeError):
                decode_entry_binary(data[:cut])

    def test_oversized_body_length(self):
        data = b"\xff\xff\xff\x7f" + b"abc"
        with pytest.raises(CacheDecodeError) as exc_info:
            decode_entry_binary(data)
        assert exc_info.value.offset == 4

    def test_oversized_value_count(self):
        data = (
            b"\x00\x00\x00\x00"
            + b"\x01\x00\x00\x00"
            + b"\x01\x00\x00\x00A"
            + b"\xff\xff\xff\xff"
        )
        with pytest.raises(CacheDecodeError):
            decode_entry_binary(data)

    def test_trailing_bytes(self):
        with pytest.raises(CacheDecodeError):
            decode_entry_binary(EMPTY_ENTRY + b"\x00")

    def test_bad_timestamp_version(self):
        data = EMPTY_ENTRY[:12] + b"\x07" + EMPTY_ENTRY[13:]
        with pytest.raises(CacheDecodeError):
            decode_entry_binary(data)

    def test_invalid_utf8_header_name(self):
        data = (
            b"\x00\x00\x00\x00"
            + b"\x01\x00\x00\x00"
            + b"\x01\x00\x00\x00\xff"
            + b"\x00\x00\x00\x00"
            + b"\x0f\x00\x00\x00"
            + ZERO_TIMESTAMP
        )
        with pytest.raises(CacheDecodeError):
            decode_entry_binary(data)

    @pytest.mark.parametrize("payload", [b"not base64!", "café", b"abc"])
    def test_invalid_text_payloads(self, payload):
        with pytest.raises(CacheDecodeError):
            decode_entry(payload)
