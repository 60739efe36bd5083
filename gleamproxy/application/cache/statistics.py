"""Cache statistics tracking and reporting."""

from typing import Dict, Any
import time

from ...constants import MONITORING_HIT_RATE_PRECISION


class CacheStatistics:
    """Tracks how the dispatcher resolved requests against the cache."""

    def __init__(self):
        """Initialize cache statistics."""
        self.cache_hits = 0
        self.cache_misses = 0
        self.bypassed = 0
        self.stored = 0
        self.start_time = time.time()

    def record_hit(self):
        """Record a cache hit."""
        self.cache_hits += 1

    def record_miss(self):
        """Record a cache miss."""
        self.cache_misses += 1

    def record_bypass(self):
        """Record a request that never consults the cache."""
        self.bypassed += 1

    def record_store(self):
        """Record a captured response handed to the cache."""
        self.stored += 1

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return self.cache_hits / total

    @property
    def uptime_seconds(self) -> float:
        """Get cache uptime in seconds."""
        return time.time() - self.start_time

    def get_stats(self) -> Dict[str, Any]:
        """Get all statistics as a dictionary."""
        return {
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "hit_rate": round(self.hit_rate, MONITORING_HIT_RATE_PRECISION),
            "bypassed": self.bypassed,
            "stored": self.stored,
            "uptime_seconds": round(self.uptime_seconds, 1),
        }

    def reset(self):
        """Reset all statistics."""
        self.cache_hits = 0
        self.cache_misses = 0
        self.bypassed = 0
        self.stored = 0
        self.start_time = time.time()
