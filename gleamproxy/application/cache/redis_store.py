"""Redis cache backend.

Entries are stored as base64 text produced by :mod:`.codec` and expire
through Redis' own per-key TTL, so the embedded expiration is left at
``ZERO_INSTANT``. Any Redis or decode failure is reported as a miss.
"""

import math
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Sequence

import redis.asyncio as redis
from redis.exceptions import RedisError

from .base import Cache
from .codec import decode_entry, encode_entry
from ...constants import REDIS_MIN_TTL_MS, ZERO_INSTANT
from ...domain.exceptions import CacheDecodeError
from ...domain.models import CacheEntry, copy_headers
from ...logging import debug, warning, LogRecord, LogEvent


def ttl_to_milliseconds(ttl: timedelta) -> int:
    """Convert a TTL to the ``PX`` argument, never below one millisecond."""
    return max(REDIS_MIN_TTL_MS, math.ceil(ttl / timedelta(milliseconds=1)))


class RedisCache(Cache):
    """Cache backed by a Redis server, shared by every proxy process."""

    backend_name = "redis"

    def __init__(self, client: redis.Redis, key_prefix: str = ""):
        self._client = client
        self._key_prefix = key_prefix
        self.read_errors = 0
        self.write_errors = 0
        self.decode_errors = 0

    @classmethod
    def from_url(
        cls, redis_url: str, socket_timeout: Optional[float] = None, key_prefix: str = ""
    ) -> "RedisCache":
        """Create a cache from a ``redis://`` URL.

        Raises:
            ValueError: If the URL cannot be parsed.
        """
        client = redis.from_url(
            redis_url,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
        return cls(client, key_prefix=key_prefix)

    def _redis_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def set(
        self,
        key: str,
        body: bytes,
        headers: Mapping[str, Sequence[str]],
        ttl: timedelta,
    ) -> None:
        if ttl <= timedelta(0):
            return

        entry = CacheEntry(
            body=bytes(body), headers=copy_headers(headers), expires_at=ZERO_INSTANT
        )
        try:
            value = encode_entry(entry)
        except ValueError as e:
            warning(
                LogRecord(
                    event=LogEvent.CACHE_BACKEND_ERROR.value,
                    message="Response could not be encoded for Redis",
                    data={"cache_key": key},
                ),
                exc=e,
            )
            return

        try:
            await self._client.set(
                self._redis_key(key), value, px=ttl_to_milliseconds(ttl)
            )
        except RedisError as e:
            self.write_errors += 1
            warning(
                LogRecord(
                    event=LogEvent.CACHE_BACKEND_ERROR.value,
                    message="Redis write failed; response not cached",
                    data={"cache_key": key},
                ),
                exc=e,
            )

    async def get(self, key: str) -> Optional[CacheEntry]:
        try:
            value = await self._client.get(self._redis_key(key))
        except RedisError as e:
            self.read_errors += 1
            warning(
                LogRecord(
                    event=LogEvent.CACHE_BACKEND_ERROR.value,
                    message="Redis read failed; treating as cache miss",
                    data={"cache_key": key},
                ),
                exc=e,
            )
            return None

        if value is None:
            return None

        try:
            return decode_entry(value)
        except CacheDecodeError as e:
            self.decode_errors += 1
            debug(
                LogRecord(
                    event=LogEvent.CACHE_DECODE_ERROR.value,
                    message=f"Stored entry could not be decoded: {e.message}",
                    data={"cache_key": key, "offset": e.offset},
                )
            )
            return None

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats.update(
            {
                "read_errors": self.read_errors,
                "write_errors": self.write_errors,
                "decode_errors": self.decode_errors,
            }
        )
        return stats

    async def close(self) -> None:
        await self._client.aclose()
