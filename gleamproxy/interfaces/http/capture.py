"""Response capture for the cache-miss path."""

from typing import Optional

from starlette.types import Message, Send

from ...domain.models import HeaderMap


class CapturedResponse:
    """ASGI ``send`` decorator that records what it forwards.

    Every message is passed to the wrapped ``send`` unchanged and in order;
    the status and headers of ``http.response.start`` and every
    ``http.response.body`` chunk are recorded on the way through. Nothing is
    delayed or buffered on the client's side.
    """

    def __init__(self, send: Send):
        self._send = send
        self.status: Optional[int] = None
        self.headers: HeaderMap = {}
        self._buffer = bytearray()
        self.completed = False

    async def __call__(self, message: Message) -> None:
        message_type = message["type"]
        if message_type == "http.response.start":
            self.status = message["status"]
            for name, value in message.get("headers", []):
                self.headers.setdefault(name.decode("latin-1"), []).append(
                    value.decode("latin-1")
                )
        elif message_type == "http.response.body":
            self._buffer += message.get("body", b"")
        await self._send(message)
        if message_type == "http.response.body" and not message.get("more_body", False):
            self.completed = True

    @property
    def body(self) -> bytes:
        """Every body byte sent so far."""
        return bytes(self._buffer)
