"""
HTTP client factory for the origin proxy.
Handles configuration and initialization of the pooled httpx client.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ...config import Settings

CLIENT_DEFAULT_HEADERS = ("Accept", "Accept-Encoding", "User-Agent")


@dataclass
class ConnectionLimits:
    """Connection pool configuration."""

    max_keepalive: int
    max_connections: int
    keepalive_expiry: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionLimits":
        return cls(
            max_keepalive=settings.pool_max_keepalive_connections,
            max_connections=settings.pool_max_connections,
            keepalive_expiry=settings.pool_keepalive_expiry,
        )


class HttpClientFactory:
    """Factory for creating configured HTTP clients for the origin."""

    @staticmethod
    def create_client(settings: Settings) -> httpx.AsyncClient:
        """
        Create a pooled client for talking to the origin.

        Redirects are not followed: they are relayed to the client like any
        other origin response.

        Args:
            settings: Application settings

        Returns:
            Configured httpx client
        """
        limits = ConnectionLimits.from_settings(settings)
        http_client_kwargs = HttpClientFactory._build_httpx_config(settings, limits)
        client = HttpClientFactory._create_with_http2_fallback(
            http_client_kwargs, settings.http2_enabled
        )
        # Origin requests carry only the headers the client sent
        for name in CLIENT_DEFAULT_HEADERS:
            if name in client.headers:
                del client.headers[name]
        return client

    @staticmethod
    def _build_httpx_config(
        settings: Settings, limits: ConnectionLimits
    ) -> Dict[str, Any]:
        """Build httpx client configuration."""
        return {
            "limits": httpx.Limits(
                max_keepalive_connections=limits.max_keepalive,
                max_connections=limits.max_connections,
                keepalive_expiry=limits.keepalive_expiry,
            ),
            "timeout": httpx.Timeout(
                connect=settings.http_connect_timeout,
                read=settings.http_read_timeout,
                write=settings.http_write_timeout,
                pool=settings.http_pool_timeout,
            ),
            "verify": os.getenv("SSL_CERT_FILE", True),
            "follow_redirects": False,
            "trust_env": False,
        }

    @staticmethod
    def _create_with_http2_fallback(
        http_client_kwargs: Dict[str, Any], http2: bool
    ) -> httpx.AsyncClient:
        """
        Create httpx client with HTTP/2 support, falling back to HTTP/1.1.

        Args:
            http_client_kwargs: Base client configuration
            http2: Whether HTTP/2 should be attempted

        Returns:
            Configured httpx client
        """
        if http2:
            try:
                client = httpx.AsyncClient(**http_client_kwargs, http2=True)
                logging.info("Using httpx.AsyncClient with HTTP/2 for the origin")
                return client
            except ImportError:
                logging.info(
                    "Using httpx.AsyncClient (HTTP/1.1) for the origin. "
                    "Install h2 for HTTP/2: pip install 'httpx[http2]'"
                )
        return httpx.AsyncClient(**http_client_kwargs)

    @staticmethod
    async def close_client(client: Optional[httpx.AsyncClient]) -> None:
        """
        Properly close an HTTP client to avoid resource leaks.

        Args:
            client: HTTP client to close
        """
        if not client:
            return

        try:
            await client.aclose()
        except (httpx.HTTPError, RuntimeError) as e:
            logging.warning(f"Error closing HTTP client: {e}")
