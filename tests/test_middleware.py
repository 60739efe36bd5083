"""Tests for the request-id and timing middleware."""

import time

import anyio
import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from gleamproxy.interfaces.http.middleware import logging_middleware


def _app() -> FastAPI:
    app = FastAPI()
    app.middleware("http")(logging_middleware)
    return app


class TestLoggingMiddleware:
    def test_request_id_on_state_and_response(self):
        app = _app()

        @app.get("/test")
        async def endpoint(request: Request):
            return {"request_id": request.state.request_id}

        response = TestClient(app).get("/test")
        assert response.status_code == 200
        assert response.headers["X-Request-ID"] == response.json()["request_id"]

    def test_existing_request_id_kept(self):
        app = _app()

        @app.middleware("http")
        async def set_id_first(request: Request, call_next):
            request.state.request_id = "existing-id"
            request.state.start_time_monotonic = time.monotonic()
            return await call_next(request)

        @app.get("/test")
        async def endpoint():
            return {"ok": True}

        response = TestClient(app).get("/test")
        assert response.headers["X-Request-ID"] == "existing-id"

    def test_response_time_header(self):
        app = _app()

        @app.get("/slow")
        async def endpoint():
            await anyio.sleep(0.05)
            return {"ok": True}

        response = TestClient(app).get("/slow")
        assert float(response.headers["X-Response-Time-ms"]) >= 40

    @pytest.mark.parametrize("method", ["get", "post", "put", "delete"])
    def test_headers_for_every_method(self, method):
        app = _app()

        @app.api_route("/test", methods=["GET", "POST", "PUT", "DELETE"])
        async def endpoint():
            return {"ok": True}

        response = getattr(TestClient(app), method)("/test")
        assert "X-Request-ID" in response.headers
        assert "X-Response-Time-ms" in response.headers
