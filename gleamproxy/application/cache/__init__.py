"""Cache module: storage backends and the binary entry codec."""

from .base import Cache
from .codec import decode_entry, encode_entry
from .factory import create_cache
from .memory_store import MemoryCache
from .redis_store import RedisCache
from .statistics import CacheStatistics

__all__ = [
    "Cache",
    "MemoryCache",
    "RedisCache",
    "CacheStatistics",
    "create_cache",
    "encode_entry",
    "decode_entry",
]
