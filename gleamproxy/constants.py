"""Constants module for GleamProxy configuration.

Contains default values for the cache layer, the origin HTTP client and the
binary cache-entry format.
"""

from datetime import datetime, timezone
from typing import FrozenSet

# Configuration defaults
DEFAULT_ORIGIN_URL = "https://httpbin.org"
DEFAULT_TTL_MINUTES = 5
MAX_TTL_MINUTES = 1000 * 365 * 24 * 60  # keeps now + ttl inside datetime range
DEFAULT_PORT = 8080
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_CACHE_MAX_ENTRIES = 0  # 0 = unbounded
DEFAULT_STATUS_PATH_PREFIX = "/_gleam"

# Redis client defaults
DEFAULT_REDIS_SOCKET_TIMEOUT_SECONDS = 5.0
REDIS_MIN_TTL_MS = 1

# Binary cache-entry format
LENGTH_PREFIX_FORMAT = "<I"
LENGTH_PREFIX_SIZE = 4
MAX_FIELD_LENGTH = 0xFFFFFFFF

# Binary timestamp layout: version, seconds since 0001-01-01 UTC, nanoseconds,
# UTC offset in minutes (-1 means UTC) and, for version 2, offset seconds.
TIMESTAMP_VERSION_V1 = 1
TIMESTAMP_VERSION_V2 = 2
TIMESTAMP_V1_SIZE = 15
TIMESTAMP_V2_SIZE = 16
TIMESTAMP_UTC_OFFSET_MINUTES = -1
TIMESTAMP_EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)

# Expiration recorded for entries whose expiry is enforced by the backend
ZERO_INSTANT = TIMESTAMP_EPOCH

# Hop-by-hop headers are meaningful only for a single transport-level
# connection and must not be forwarded by proxies (RFC 7230, section 6.1).
HOP_BY_HOP_HEADERS: FrozenSet[str] = frozenset(
    {
        "connection",
        "proxy-connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)

# Monitoring
MONITORING_HIT_RATE_PRECISION = 3
