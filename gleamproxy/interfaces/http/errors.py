import time
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from ...logging import error, LogRecord, LogEvent


def build_error_response(error_type: str, message: str, status_code: int) -> JSONResponse:
    """Creates a JSONResponse with the proxy's error envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"type": "error", "error": {"type": error_type, "message": message}},
    )


async def log_and_return_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    error_message: str,
    caught_exception: Optional[BaseException] = None,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    start_time_mono = getattr(request.state, "start_time_monotonic", time.monotonic())
    duration_ms = (time.monotonic() - start_time_mono) * 1000

    error(
        LogRecord(
            event=LogEvent.REQUEST_FAILURE.value,
            message=f"Request failed: {error_message}",
            request_id=request_id,
            data={
                "status_code": status_code,
                "duration_ms": duration_ms,
                "error_type": error_type,
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else "unknown",
            },
        ),
        exc=caught_exception,
    )
    return build_error_response(error_type, error_message, status_code)
