"""Selects the cache backend once at startup."""

from .base import Cache
from .memory_store import MemoryCache
from .redis_store import RedisCache
from ...config import Settings
from ...domain.exceptions import CacheBackendError
from ...enums import CacheBackend
from ...logging import info, LogRecord, LogEvent


def create_cache(settings: Settings) -> Cache:
    """Build the cache backend named by ``settings.cache_type``.

    Raises:
        CacheBackendError: If the Redis URL cannot be parsed.
    """
    if settings.cache_type == CacheBackend.Redis:
        try:
            cache: Cache = RedisCache.from_url(
                settings.redis_url, socket_timeout=settings.redis_socket_timeout
            )
        except ValueError as e:
            raise CacheBackendError(
                f"Failed to parse Redis URL: {e}", backend=CacheBackend.Redis.value
            ) from e
    else:
        cache = MemoryCache(max_entries=settings.cache_max_entries)

    info(
        LogRecord(
            event=LogEvent.STARTUP.value,
            message=f"Using {cache.backend_name} cache backend",
            data=cache.get_stats(),
        )
    )
    return cache
