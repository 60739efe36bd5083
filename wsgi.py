"""
ASGI entry point for Gunicorn/Uvicorn workers.
This module provides the application factory for production deployment.
"""

import sys
from typing import Any
from dotenv import load_dotenv
from gleamproxy.config import load_settings, ConfigurationError
from gleamproxy.domain.exceptions import CacheBackendError
from gleamproxy.interfaces.http.app import create_app

load_dotenv()


def create_application() -> Any:
    """Application factory for Uvicorn."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"\nConfiguration Error:\n{e}", file=sys.stderr)
        raise SystemExit(1)
    try:
        return create_app(settings)
    except CacheBackendError as e:
        print(f"\nFailed to initialize cache backend: {e.message}", file=sys.stderr)
        raise SystemExit(1)


app = create_application()
