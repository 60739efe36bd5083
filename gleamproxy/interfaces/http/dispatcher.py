"""Per-request cache decision logic."""

from datetime import timedelta
from typing import List, Optional, Tuple

from starlette.types import Receive, Scope, Send

from .capture import CapturedResponse
from ...application.cache.base import Cache
from ...application.cache.statistics import CacheStatistics
from ...domain.models import CacheEntry
from ...enums import CacheOutcome
from ...infrastructure.origin.reverse_proxy import OriginProxy
from ...logging import debug, info, is_debug_enabled, LogRecord, LogEvent


def cache_key(scope: Scope) -> str:
    """The request target exactly as received: raw path plus raw query."""
    raw_path = scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else scope.get("path", "/")
    query = scope.get("query_string", b"")
    if query:
        return f"{path}?{query.decode('latin-1')}"
    return path


def _encode_header_value(value: str) -> bytes:
    try:
        return value.encode("latin-1")
    except UnicodeEncodeError:
        return value.encode("utf-8")


def entry_headers(entry: CacheEntry) -> List[Tuple[bytes, bytes]]:
    return [
        (_encode_header_value(name), _encode_header_value(value))
        for name, values in entry.headers.items()
        for value in values
    ]


class CachingDispatcher:
    """ASGI application caching GET responses in front of an origin.

    GET requests are looked up by :func:`cache_key`. A hit is written straight
    from the cache and the origin is not contacted; a miss is forwarded with
    a :class:`CapturedResponse` around ``send`` and the complete response is
    stored afterwards. Other methods are forwarded untouched and never read or
    write the cache.
    """

    def __init__(
        self,
        cache: Cache,
        origin: OriginProxy,
        ttl: timedelta,
        statistics: Optional[CacheStatistics] = None,
    ):
        self.cache = cache
        self.origin = origin
        self.ttl = ttl
        self.statistics = statistics or CacheStatistics()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        method = scope["method"]
        # Filled in by logging_middleware through request.state
        request_id = scope.get("state", {}).get("request_id")
        info(
            LogRecord(
                event=LogEvent.REQUEST_RECEIVED.value,
                message=f"Received request: {method} {scope.get('path', '/')}",
                request_id=request_id,
            )
        )

        if method != "GET":
            self.statistics.record_bypass()
            self._log_outcome(CacheOutcome.Bypass, method, None, request_id)
            await self.origin.forward(scope, receive, send)
            return

        key = cache_key(scope)
        entry = await self.cache.get(key)
        if entry is not None:
            self.statistics.record_hit()
            self._log_outcome(CacheOutcome.Hit, method, key, request_id)
            await self._serve_entry(entry, send)
            return

        self.statistics.record_miss()
        self._log_outcome(CacheOutcome.Miss, method, key, request_id)
        capture = CapturedResponse(send)
        await self.origin.forward(scope, receive, capture)
        if not capture.completed:
            return

        await self.cache.set(key, capture.body, capture.headers, self.ttl)
        self.statistics.record_store()
        debug(
            LogRecord(
                event=LogEvent.CACHE_STORE.value,
                message="Response handed to cache",
                request_id=request_id,
                data={
                    "cache_key": key,
                    "status_code": capture.status,
                    "body_bytes": len(capture.body),
                    "ttl_seconds": self.ttl.total_seconds(),
                },
            )
        )

    @staticmethod
    async def _serve_entry(entry: CacheEntry, send: Send) -> None:
        await send(
            {
                "type": "http.response.start",
                "status": 200,
                "headers": entry_headers(entry),
            }
        )
        await send({"type": "http.response.body", "body": entry.body, "more_body": False})

    @staticmethod
    def _log_outcome(
        outcome: CacheOutcome, method: str, key: Optional[str], request_id: Optional[str]
    ) -> None:
        if not is_debug_enabled():
            return
        event = {
            CacheOutcome.Hit: LogEvent.CACHE_HIT,
            CacheOutcome.Miss: LogEvent.CACHE_MISS,
            CacheOutcome.Bypass: LogEvent.CACHE_BYPASS,
        }[outcome]
        debug(
            LogRecord(
                event=event.value,
                message=f"Cache {outcome.value}",
                request_id=request_id,
                data={"method": method, "cache_key": key},
            )
        )
