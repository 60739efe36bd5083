"""Tests for the JSON error envelope."""

import json
from unittest.mock import MagicMock, patch

import pytest

from gleamproxy.domain.exceptions import OriginUnavailableError
from gleamproxy.interfaces.http.errors import (
    build_error_response,
    log_and_return_error_response,
)


class TestBuildErrorResponse:
    def test_envelope(self):
        response = build_error_response("origin_unavailable", "Origin down", 502)
        assert response.status_code == 502
        assert json.loads(response.body) == {
            "type": "error",
            "error": {"type": "origin_unavailable", "message": "Origin down"},
        }


class TestLogAndReturnErrorResponse:
    @pytest.mark.anyio
    async def test_logs_request_failure(self):
        request = MagicMock()
        request.state.request_id = "req-1"
        request.state.start_time_monotonic = 0.0
        request.method = "GET"
        request.url.path = "/foo"
        request.client.host = "127.0.0.1"
        exc = OriginUnavailableError("refused", origin_url="http://origin.test")

        with patch("gleamproxy.interfaces.http.errors.error") as log_error:
            response = await log_and_return_error_response(
                request, 502, "origin_unavailable", "Origin down", caught_exception=exc
            )

        assert response.status_code == 502
        record = log_error.call_args.args[0]
        assert record.event == "request_failure"
        assert record.request_id == "req-1"
        assert record.data["path"] == "/foo"
        assert log_error.call_args.kwargs["exc"] is exc
