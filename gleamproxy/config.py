from datetime import timedelta
from typing import Optional, List, Union, Any
from urllib.parse import urlparse

from pydantic import Field, AliasChoices, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_ORIGIN_URL,
    DEFAULT_PORT,
    DEFAULT_REDIS_SOCKET_TIMEOUT_SECONDS,
    DEFAULT_REDIS_URL,
    DEFAULT_STATUS_PATH_PREFIX,
    DEFAULT_TTL_MINUTES,
    MAX_TTL_MINUTES,
)
from .enums import CacheBackend


class ConfigurationError(Exception):
    """Raised when the environment does not describe a runnable proxy."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", env_prefix="", case_sensitive=False
    )

    origin_url: str = Field(
        default=DEFAULT_ORIGIN_URL, validation_alias=AliasChoices("ORIGIN_URL", "origin_url")
    )
    ttl_minutes: int = Field(
        default=DEFAULT_TTL_MINUTES,
        ge=0,
        le=MAX_TTL_MINUTES,
        validation_alias=AliasChoices("TTL_MINUTES", "ttl_minutes"),
    )
    port: int = Field(default=DEFAULT_PORT, validation_alias=AliasChoices("PORT", "port"))
    host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("HOST", "host"))
    reload: bool = False

    cache_type: CacheBackend = Field(
        default=CacheBackend.Memory,
        validation_alias=AliasChoices("CACHE_TYPE", "cache_type"),
    )
    redis_url: str = Field(
        default=DEFAULT_REDIS_URL, validation_alias=AliasChoices("REDIS_URL", "redis_url")
    )
    redis_socket_timeout: float = Field(
        default=DEFAULT_REDIS_SOCKET_TIMEOUT_SECONDS,
        gt=0,
        validation_alias=AliasChoices("REDIS_SOCKET_TIMEOUT", "redis_socket_timeout"),
    )
    cache_max_entries: int = Field(
        default=DEFAULT_CACHE_MAX_ENTRIES,
        ge=0,
        validation_alias=AliasChoices("CACHE_SIZE", "cache_max_entries"),
    )

    app_name: str = "GleamProxy"
    app_version: str = "1.0.0"
    log_level: str = Field(
        default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level")
    )
    log_file_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LOG_FILE_PATH", "log_file_path")
    )
    error_log_file_path: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("ERROR_LOG_FILE_PATH", "error_log_file_path"),
    )
    log_pretty_console: bool = Field(
        default=False,
        validation_alias=AliasChoices("LOG_PRETTY_CONSOLE", "log_pretty_console"),
    )
    redact_log_fields: Union[List[str], str] = Field(
        default_factory=lambda: ["authorization", "cookie", "set-cookie", "redis_url"],
        validation_alias=AliasChoices("REDACT_LOG_FIELDS", "redact_log_fields"),
    )

    status_path_prefix: str = Field(
        default=DEFAULT_STATUS_PATH_PREFIX,
        validation_alias=AliasChoices("STATUS_PATH_PREFIX", "status_path_prefix"),
    )

    # Origin connection pool configuration
    pool_max_keepalive_connections: int = Field(
        default=50,
        validation_alias=AliasChoices(
            "POOL_MAX_KEEPALIVE_CONNECTIONS", "pool_max_keepalive_connections"
        ),
    )
    pool_max_connections: int = Field(
        default=500,
        validation_alias=AliasChoices("POOL_MAX_CONNECTIONS", "pool_max_connections"),
    )
    pool_keepalive_expiry: int = Field(
        default=120,
        validation_alias=AliasChoices("POOL_KEEPALIVE_EXPIRY", "pool_keepalive_expiry"),
    )

    # Origin HTTP timeout configuration
    http_connect_timeout: float = Field(
        default=10.0,
        validation_alias=AliasChoices("HTTP_CONNECT_TIMEOUT", "http_connect_timeout"),
    )
    http_read_timeout: float = Field(
        default=60.0,
        validation_alias=AliasChoices("HTTP_READ_TIMEOUT", "http_read_timeout"),
    )
    http_write_timeout: float = Field(
        default=30.0,
        validation_alias=AliasChoices("HTTP_WRITE_TIMEOUT", "http_write_timeout"),
    )
    http_pool_timeout: float = Field(
        default=10.0,
        validation_alias=AliasChoices("HTTP_POOL_TIMEOUT", "http_pool_timeout"),
    )
    http2_enabled: bool = Field(
        default=True, validation_alias=AliasChoices("HTTP2_ENABLED", "http2_enabled")
    )

    @field_validator("redact_log_fields")
    @classmethod
    def parse_comma_separated(cls, v: Union[List[str], str]) -> List[str]:
        """Parse comma-separated string values into lists for configuration fields.

        Args:
            v: Input value which can be a string or list

        Returns:
            List of stripped, non-empty items
        """
        if isinstance(v, str):
            if v.strip() == "":
                return []
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("cache_type", mode="before")
    @classmethod
    def normalize_cache_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("origin_url")
    @classmethod
    def validate_origin_url(cls, v: str) -> str:
        """Require an absolute http(s) origin URL with a host."""
        parsed = urlparse(v.strip())
        if parsed.scheme.lower() not in ("http", "https"):
            raise ValueError("ORIGIN_URL must use http or https.")
        if not parsed.hostname:
            raise ValueError("ORIGIN_URL must include a host.")
        return v.strip()

    @field_validator("status_path_prefix")
    @classmethod
    def normalize_status_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v

    @property
    def ttl(self) -> timedelta:
        """Time to live applied to every cached response."""
        return timedelta(minutes=self.ttl_minutes)


def load_settings(**overrides: Any) -> Settings:
    """Load settings from the environment, turning validation failures into
    a single :class:`ConfigurationError` listing every offending option.

    Raises:
        ConfigurationError: If any option is missing or invalid.
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        problems = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ())) or "settings"
            problems.append(f"{location}: {err.get('msg')}")
        raise ConfigurationError("\n".join(problems)) from exc
