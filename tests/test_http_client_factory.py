"""Tests for the origin HTTP client factory."""

from unittest.mock import AsyncMock

import httpx
import pytest

from gleamproxy.infrastructure.origin.http_client_factory import (
    CLIENT_DEFAULT_HEADERS,
    ConnectionLimits,
    HttpClientFactory,
)


class TestHttpClientFactory:
    @pytest.mark.anyio
    async def test_client_carries_no_default_headers(self, settings):
        client = HttpClientFactory.create_client(settings)
        try:
            for name in CLIENT_DEFAULT_HEADERS:
                assert name not in client.headers
            assert client.follow_redirects is False
            assert client.timeout.connect == settings.http_connect_timeout
        finally:
            await client.aclose()

    def test_limits_from_settings(self, settings):
        limits = ConnectionLimits.from_settings(settings)
        assert limits.max_connections == settings.pool_max_connections
        assert limits.max_keepalive == settings.pool_max_keepalive_connections

    @pytest.mark.anyio
    async def test_close_client_tolerates_none(self):
        await HttpClientFactory.close_client(None)

    @pytest.mark.anyio
    async def test_close_client_swallows_transport_errors(self):
        client = AsyncMock(spec=httpx.AsyncClient)
        client.aclose.side_effect = httpx.ConnectError("gone")
        await HttpClientFactory.close_client(client)
        client.aclose.assert_awaited_once()
