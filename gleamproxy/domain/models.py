from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Sequence

from ..constants import ZERO_INSTANT

HeaderMap = Dict[str, List[str]]


def copy_headers(headers: Mapping[str, Sequence[str]]) -> HeaderMap:
    """Return a detached copy of a multi-value header mapping."""
    return {name: list(values) for name, values in headers.items()}


@dataclass(frozen=True)
class CacheEntry:
    """A cached origin response.

    Attributes:
        body (bytes): The complete response payload as sent to the client.
        headers (HeaderMap): Header name (case as received) to its values, in
            the order they were sent.
        expires_at (datetime): Timezone-aware instant after which the entry is
            considered absent. Backends that enforce expiry natively leave it
            at ``ZERO_INSTANT``.
    """

    body: bytes
    headers: HeaderMap = field(default_factory=dict)
    expires_at: datetime = ZERO_INSTANT

    def is_expired(self, now: datetime) -> bool:
        """Check if the entry is expired at ``now`` (expiry instant included)."""
        return self.expires_at <= now
