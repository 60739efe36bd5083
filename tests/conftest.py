from typing import Iterator

from unittest.mock import MagicMock, patch
import pytest

from gleamproxy.config import Settings


# Configure anyio to only use asyncio backend
@pytest.fixture
def anyio_backend() -> str:
    """Force tests to use asyncio backend only."""
    return "asyncio"


@pytest.fixture(autouse=True, scope="session")
def mock_logger() -> Iterator[MagicMock]:
    with patch("gleamproxy.logging._logger", MagicMock()) as mock_logger:
        mock_logger.log.return_value = None
        yield mock_logger


@pytest.fixture
def settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Settings for an in-memory proxy in front of ``http://origin.test``."""
    for name in ("ORIGIN_URL", "TTL_MINUTES", "CACHE_TYPE", "CACHE_SIZE", "PORT"):
        monkeypatch.delenv(name, raising=False)
    return Settings(
        _env_file=None,
        origin_url="http://origin.test",
        ttl_minutes=5,
        cache_type="memory",
        log_level="WARNING",
        http2_enabled=False,
    )
