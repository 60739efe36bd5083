"""Single-origin reverse proxy speaking raw ASGI.

The proxy streams the origin's response into whatever ``send`` callable it is
given, which lets callers interpose decorators such as response capture.
"""

from typing import AsyncIterator, Iterable, List, Optional, Set, Tuple
from urllib.parse import urlsplit, urlunsplit

import httpx
from starlette.types import Receive, Scope, Send

from ...constants import HOP_BY_HOP_HEADERS
from ...domain.exceptions import OriginUnavailableError

RawHeaders = List[Tuple[bytes, bytes]]


def _join_paths(base: str, path: str) -> str:
    base_slash = base.endswith("/")
    path_slash = path.startswith("/")
    if base_slash and path_slash:
        return base + path[1:]
    if not base_slash and not path_slash:
        return base + "/" + path
    return base + path


def _connection_tokens(headers: Iterable[Tuple[bytes, bytes]]) -> Set[str]:
    """Header names listed in ``Connection`` are hop-by-hop as well."""
    tokens: Set[str] = set()
    for name, value in headers:
        if name.lower() == b"connection":
            tokens.update(
                token.strip().lower()
                for token in value.decode("latin-1").split(",")
                if token.strip()
            )
    return tokens


def strip_hop_by_hop(headers: Iterable[Tuple[bytes, bytes]]) -> RawHeaders:
    headers = list(headers)
    dropped = HOP_BY_HOP_HEADERS | _connection_tokens(headers)
    return [
        (name, value)
        for name, value in headers
        if name.decode("latin-1").lower() not in dropped
    ]


async def _request_body(receive: Receive) -> AsyncIterator[bytes]:
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            return
        body = message.get("body", b"")
        if body:
            yield body
        if not message.get("more_body", False):
            return


class OriginProxy:
    """Forwards ASGI HTTP requests to a single origin."""

    def __init__(self, origin_url: str, client: httpx.AsyncClient):
        self.origin_url = origin_url
        self._client = client
        parts = urlsplit(origin_url)
        self._scheme = parts.scheme
        self._netloc = parts.netloc
        self._base_path = parts.path
        self._base_query = parts.query

    def build_url(self, scope: Scope) -> str:
        """Join the origin URL with the request target, keeping both queries."""
        raw_path = scope.get("raw_path")
        request_path = (
            raw_path.decode("latin-1") if raw_path else scope.get("path", "/")
        )
        request_query = scope.get("query_string", b"").decode("latin-1")

        path = _join_paths(self._base_path, request_path)
        if self._base_query and request_query:
            query = f"{self._base_query}&{request_query}"
        else:
            query = self._base_query or request_query
        return urlunsplit((self._scheme, self._netloc, path, query, ""))

    def build_headers(self, scope: Scope) -> RawHeaders:
        """Request headers for the origin.

        ``Host`` is left for httpx to derive from the origin URL; the client's
        view of the request is passed on in ``X-Forwarded-*`` headers.
        """
        incoming = list(scope.get("headers", []))
        headers = [
            (name, value)
            for name, value in strip_hop_by_hop(incoming)
            if name.lower() not in (b"host", b"x-forwarded-host", b"x-forwarded-proto")
        ]

        host: Optional[bytes] = next(
            (value for name, value in incoming if name.lower() == b"host"), None
        )
        client = scope.get("client")
        if client:
            prior = [value for name, value in headers if name.lower() == b"x-forwarded-for"]
            headers = [(n, v) for n, v in headers if n.lower() != b"x-forwarded-for"]
            chain = b", ".join(prior + [client[0].encode("latin-1")])
            headers.append((b"x-forwarded-for", chain))
        if host:
            headers.append((b"x-forwarded-host", host))
        headers.append((b"x-forwarded-proto", scope.get("scheme", "http").encode("latin-1")))
        return headers

    @staticmethod
    def _has_body(headers: RawHeaders) -> bool:
        for name, value in headers:
            lowered = name.lower()
            if lowered == b"transfer-encoding":
                return True
            if lowered == b"content-length" and value.strip() not in (b"", b"0"):
                return True
        return False

    async def forward(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Send the request to the origin and stream its response into ``send``.

        Raises:
            OriginUnavailableError: If the origin could not be reached before
                any part of the response was received. Nothing has been sent
                to ``send`` in that case.
        """
        incoming = list(scope.get("headers", []))
        content = _request_body(receive) if self._has_body(incoming) else None
        url = self.build_url(scope)
        request = self._client.build_request(
            scope["method"], url, headers=self.build_headers(scope), content=content
        )

        try:
            response = await self._client.send(request, stream=True)
        except httpx.TransportError as e:
            raise OriginUnavailableError(
                f"Origin request failed: {type(e).__name__}: {e}",
                origin_url=self.origin_url,
                details={"method": scope["method"], "url": url},
            ) from e

        try:
            await send(
                {
                    "type": "http.response.start",
                    "status": response.status_code,
                    "headers": strip_hop_by_hop(response.headers.raw),
                }
            )
            async for chunk in response.aiter_raw():
                if chunk:
                    await send(
                        {"type": "http.response.body", "body": chunk, "more_body": True}
                    )
            await send({"type": "http.response.body", "body": b"", "more_body": False})
        finally:
            await response.aclose()
