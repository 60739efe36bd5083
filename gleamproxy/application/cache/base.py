"""Cache abstraction shared by every storage backend."""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Sequence

from ...domain.models import CacheEntry


class Cache(ABC):
    """Storage for cached origin responses keyed by request target.

    Implementations must be safe for unbounded concurrent callers and must
    never raise from :meth:`get` or :meth:`set`: every failure degrades to
    "not found" or "not stored".
    """

    backend_name: str = "abstract"

    @abstractmethod
    async def set(
        self,
        key: str,
        body: bytes,
        headers: Mapping[str, Sequence[str]],
        ttl: timedelta,
    ) -> None:
        """Store ``body`` and ``headers`` under ``key`` for ``ttl``, replacing
        any previous entry."""

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for ``key`` or ``None`` on a miss."""

    def get_stats(self) -> Dict[str, Any]:
        return {"backend": self.backend_name}

    async def close(self) -> None:
        """Release backend resources."""
        return None
