"""Custom exception hierarchy for GleamProxy.

Cache-layer errors never reach the client: stores collapse them into a cache
miss. Origin errors are mapped to HTTP responses by the application's
exception handlers.
"""

from typing import Optional, Dict, Any


class GleamProxyException(Exception):
    """Base exception for all GleamProxy-specific exceptions."""

    def __init__(
        self,
        message: str,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.request_id = request_id
        self.details = details or {}


class CacheError(GleamProxyException):
    """Base exception for cache-related errors."""

    pass


class CacheDecodeError(CacheError):
    """Raised when stored bytes cannot be decoded into a cache entry."""

    def __init__(
        self,
        message: str,
        offset: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.offset = offset


class CacheBackendError(CacheError):
    """Raised when the remote cache backend cannot be reached or fails."""

    def __init__(
        self,
        message: str,
        backend: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.backend = backend


class OriginError(GleamProxyException):
    """Base exception for origin-related errors."""

    def __init__(
        self,
        message: str,
        origin_url: Optional[str] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, request_id, details)
        self.origin_url = origin_url


class OriginUnavailableError(OriginError):
    """Raised when the origin could not be reached before any response arrived."""

    pass
