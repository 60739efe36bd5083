"""Enums module for GleamProxy configuration.

Contains all enumeration classes used throughout the application.
"""

from enum import StrEnum


class CacheBackend(StrEnum):
    """Cache storage backends selectable with ``CACHE_TYPE``."""
    Memory = "memory"
    Redis = "redis"


class CacheOutcome(StrEnum):
    """How the dispatcher resolved a request against the cache."""
    Hit = "hit"
    Miss = "miss"
    Bypass = "bypass"
