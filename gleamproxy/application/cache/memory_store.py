"""Process-local cache backend."""

from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Sequence

import anyio

from .base import Cache
from ...constants import DEFAULT_CACHE_MAX_ENTRIES
from ...domain.models import CacheEntry, copy_headers
from ...logging import debug, LogRecord, LogEvent

_MAX_INSTANT = datetime.max.replace(tzinfo=timezone.utc)


class MemoryCache(Cache):
    """
    In-memory cache guarded by a single lock.

    Expiration is lazy: :meth:`get` treats an expired entry as absent but
    leaves it in place until it is overwritten or evicted. When
    ``max_entries`` is positive the least recently used entry is evicted
    on :meth:`set` once the bound is exceeded; ``0`` keeps the map unbounded.
    """

    backend_name = "memory"

    def __init__(self, max_entries: int = DEFAULT_CACHE_MAX_ENTRIES):
        if max_entries < 0:
            raise ValueError("max_entries must be >= 0")
        self.max_entries = max_entries
        self._store: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = anyio.Lock()
        self.eviction_count = 0

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    async def set(
        self,
        key: str,
        body: bytes,
        headers: Mapping[str, Sequence[str]],
        ttl: timedelta,
    ) -> None:
        try:
            expires_at = self._now() + ttl
        except OverflowError:
            expires_at = _MAX_INSTANT
        entry = CacheEntry(
            body=bytes(body),
            headers=copy_headers(headers),
            expires_at=expires_at,
        )
        async with self._lock:
            self._store[key] = entry
            self._store.move_to_end(key)
            if self.max_entries:
                while len(self._store) > self.max_entries:
                    self._evict_lru()

    async def get(self, key: str) -> Optional[CacheEntry]:
        async with self._lock:
            entry = self._store.get(key)
            if entry is None or entry.is_expired(self._now()):
                return None
            self._store.move_to_end(key)
            return entry

    def _evict_lru(self) -> None:
        """Evict the least recently used entry. Caller holds the lock."""
        key, entry = self._store.popitem(last=False)
        self.eviction_count += 1
        debug(
            LogRecord(
                event=LogEvent.CACHE_EVICTION.value,
                message="Evicted LRU cache entry",
                data={
                    "evicted_key": key,
                    "body_bytes": len(entry.body),
                    "max_entries": self.max_entries,
                },
            )
        )

    def __len__(self) -> int:
        return len(self._store)

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats.update(
            {
                "entries": len(self._store),
                "max_entries": self.max_entries,
                "eviction_count": self.eviction_count,
            }
        )
        return stats
