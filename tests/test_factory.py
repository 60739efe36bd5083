"""Tests for cache backend selection."""

import pytest

from gleamproxy.application.cache.factory import create_cache
from gleamproxy.application.cache.memory_store import MemoryCache
from gleamproxy.application.cache.redis_store import RedisCache
from gleamproxy.domain.exceptions import CacheBackendError
from gleamproxy.enums import CacheBackend


class TestCreateCache:
    def test_memory_backend(self, settings):
        settings.cache_max_entries = 10
        cache = create_cache(settings)
        assert isinstance(cache, MemoryCache)
        assert cache.max_entries == 10

    def test_redis_backend(self, settings):
        settings.cache_type = CacheBackend.Redis
        settings.redis_url = "redis://localhost:6379/2"
        assert isinstance(create_cache(settings), RedisCache)

    def test_bad_redis_url(self, settings):
        settings.cache_type = CacheBackend.Redis
        settings.redis_url = "localhost:6379"
        with pytest.raises(CacheBackendError) as exc_info:
            create_cache(settings)
        assert exc_info.value.backend == "redis"
