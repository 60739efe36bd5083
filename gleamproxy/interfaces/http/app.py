import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from ...config import Settings
from ...application.cache.factory import create_cache
from ...application.cache.statistics import CacheStatistics
from ...domain.exceptions import OriginUnavailableError
from ...infrastructure.origin.http_client_factory import HttpClientFactory
from ...infrastructure.origin.reverse_proxy import OriginProxy
from ...logging import init_logging, shutdown_logging, info as log_info, LogRecord, LogEvent
from .dispatcher import CachingDispatcher
from .errors import log_and_return_error_response
from .middleware import logging_middleware
from .routes.status import router as status_router


def create_app(settings: Settings) -> FastAPI:
    """Creates and configures the caching proxy application.

    Initializes logging, selects the cache backend, builds the origin client
    and mounts the caching dispatcher behind the status routes.

    Args:
        settings: Configuration settings object

    Returns:
        Fully configured FastAPI application instance

    Raises:
        CacheBackendError: If the configured cache backend cannot be created.
    """
    init_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            logging.info("Initiating application shutdown")
            try:
                await HttpClientFactory.close_client(app.state.origin_client)
                logging.info("Origin client closed")
            finally:
                try:
                    await app.state.cache.close()
                    logging.info("Cache backend closed")
                except Exception as e:
                    logging.error(f"Error closing cache backend: {str(e)}")
                log_info(
                    LogRecord(
                        event=LogEvent.SHUTDOWN.value,
                        message=f"{settings.app_name} stopped",
                    )
                )
                shutdown_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        description="Caching reverse proxy for a single origin.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.cache = create_cache(settings)
    app.state.cache_statistics = CacheStatistics()
    app.state.origin_client = HttpClientFactory.create_client(settings)
    app.state.origin = OriginProxy(settings.origin_url, app.state.origin_client)
    app.state.dispatcher = CachingDispatcher(
        cache=app.state.cache,
        origin=app.state.origin,
        ttl=settings.ttl,
        statistics=app.state.cache_statistics,
    )

    app.middleware("http")(logging_middleware)

    if settings.status_path_prefix:
        app.include_router(
            status_router, prefix=settings.status_path_prefix, tags=["Status"]
        )
    # Everything the status routes do not claim goes to the origin
    app.mount("/", app.state.dispatcher)

    @app.exception_handler(OriginUnavailableError)
    async def origin_unavailable_handler(request: Request, exc: OriginUnavailableError):
        return await log_and_return_error_response(
            request,
            502,
            "origin_unavailable",
            "The origin server could not be reached.",
            caught_exception=exc,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        return await log_and_return_error_response(
            request,
            500,
            "api_error",
            "An unexpected internal server error occurred.",
            caught_exception=exc,
        )

    log_info(
        LogRecord(
            event=LogEvent.STARTUP.value,
            message=(
                f"{settings.app_name} started with Origin: {settings.origin_url}, "
                f"TTL: {settings.ttl}, Port: {settings.port}"
            ),
            data={
                "origin_url": settings.origin_url,
                "ttl_seconds": settings.ttl.total_seconds(),
                "port": settings.port,
                "cache_type": settings.cache_type,
                "status_path_prefix": settings.status_path_prefix,
            },
        )
    )
    return app
