from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter()


@router.get("/health", include_in_schema=False)
async def health_check() -> JSONResponse:
    """Check basic proxy health and availability.

    Returns:
        JSONResponse: A response with status 'ok' and current UTC timestamp.
    """
    return JSONResponse(
        {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


@router.get("/stats")
async def get_cache_stats(request: Request) -> JSONResponse:
    """Get cache hit/miss statistics and backend details."""
    state = request.app.state
    return JSONResponse(
        content={
            "dispatcher": state.cache_statistics.get_stats(),
            "backend": state.cache.get_stats(),
            "ttl_seconds": state.settings.ttl.total_seconds(),
        }
    )


@router.post("/stats/reset")
async def reset_cache_stats(request: Request) -> JSONResponse:
    """Reset dispatcher statistics. Cached entries are left untouched."""
    request.app.state.cache_statistics.reset()
    return JSONResponse(content={"status": "stats_reset"})
