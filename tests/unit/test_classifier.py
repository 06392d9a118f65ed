"""Unit tests for ErrorClassifier."""

import asyncio

import httpx
import pytest

from running_app_client.core.classifier import (
    AUTH_FAILED_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    ErrorClassifier,
    is_retryable_status,
)
from running_app_client.errors import (
    ApiError,
    AuthError,
    ClientError,
    ErrorCode,
    RetryableServerError,
    TimeoutError,
    TransportError,
    UnknownError,
)


class TestFromResponse:
    """Tests for classifying HTTP responses."""

    def test_server_message_field(self) -> None:
        response = httpx.Response(400, json={"message": "Distance must be positive"})

        error = ErrorClassifier.classify(response)

        assert isinstance(error, ClientError)
        assert error.message == "Distance must be positive"
        assert error.status == 400
        assert error.response is response
        assert error.data == {"message": "Distance must be positive"}

    def test_server_error_field(self) -> None:
        response = httpx.Response(429, json={"error": "Too many requests"})

        error = ErrorClassifier.classify(response)

        assert isinstance(error, RetryableServerError)
        assert error.message == "Too many requests"
        assert error.code == ErrorCode.RATE_LIMITED

    def test_message_preferred_over_error(self) -> None:
        response = httpx.Response(404, json={"message": "Goal not found", "error": "NotFound"})

        assert ErrorClassifier.classify(response).message == "Goal not found"

    def test_json_without_message_falls_back_to_status_line(self) -> None:
        response = httpx.Response(500, json={"details": []})

        error = ErrorClassifier.classify(response)

        assert error.message == "HTTP 500: Internal Server Error"
        assert error.data == {"details": []}

    def test_non_json_body(self) -> None:
        response = httpx.Response(502, text="<html>Bad gateway</html>")

        error = ErrorClassifier.classify(response)

        assert isinstance(error, RetryableServerError)
        assert error.message == "HTTP 502: Bad Gateway"
        assert error.data == {"message": "<html>Bad gateway</html>"}

    def test_unparseable_json_body(self) -> None:
        response = httpx.Response(
            400, content=b"{oops", headers={"content-type": "application/json"}
        )

        error = ErrorClassifier.classify(response)

        assert error.message == "HTTP 400: Bad Request"
        assert error.data == {"message": "HTTP 400: Bad Request"}

    def test_401_is_auth_error(self) -> None:
        expired = ErrorClassifier.classify(httpx.Response(401, json={"message": "jwt Expired"}))
        invalid = ErrorClassifier.classify(httpx.Response(401, json={"message": "bad sig"}))

        assert isinstance(expired, AuthError)
        assert expired.code == ErrorCode.SESSION_EXPIRED
        assert invalid.code == ErrorCode.AUTH_FAILED

    @pytest.mark.parametrize("status", [301, 418, 501, 505])
    def test_other_statuses(self, status: int) -> None:
        error = ErrorClassifier.classify(httpx.Response(status))

        expected = ClientError if 400 <= status < 500 else UnknownError
        assert isinstance(error, expected)
        assert error.status == status


class TestFromException:
    """Tests for classifying raised exceptions."""

    def test_connect_error(self) -> None:
        exc = httpx.ConnectError("Name or service not known")

        error = ErrorClassifier.classify(exc)

        assert isinstance(error, TransportError)
        assert error.status == 0
        assert error.message == "Name or service not known"
        assert error.__cause__ is exc

    def test_empty_exception_message(self) -> None:
        error = ErrorClassifier.classify(ConnectionResetError())

        assert error.message == "Network error"
        assert error.status == 0

    def test_asyncio_timeout(self) -> None:
        error = ErrorClassifier.classify(asyncio.TimeoutError(), timeout=2.5)

        assert isinstance(error, TimeoutError)
        assert error.status == 408
        assert error.data == {"timeout_seconds": 2.5}

    def test_httpx_timeout(self) -> None:
        error = ErrorClassifier.classify(httpx.ReadTimeout("read timed out"))

        assert isinstance(error, TimeoutError)

    def test_api_error_passes_through(self) -> None:
        original = ApiError("already typed", status=418)

        assert ErrorClassifier.classify(original) is original


class TestMessages:
    """Tests for enrichment and auth messages."""

    @pytest.mark.parametrize(
        ("status", "message"),
        [
            (403, "You do not have permission to perform this action."),
            (404, "The requested resource was not found."),
            (422, "Invalid data provided. Please check your input."),
            (500, "Server error. Please try again later."),
            (503, "Server error. Please try again later."),
            (505, "Server error. Please try again later."),
        ],
    )
    def test_enrich(self, status: int, message: str) -> None:
        original = ErrorClassifier.classify(httpx.Response(status, json={"message": "raw"}))

        enriched = ErrorClassifier.enrich(original)

        assert enriched.message == message
        assert type(enriched) is type(original)
        assert enriched.status == original.status
        assert enriched.response is original.response
        assert enriched.data == {"message": "raw"}

    def test_enrich_leaves_other_statuses(self) -> None:
        original = ErrorClassifier.classify(httpx.Response(409, json={"message": "Duplicate"}))

        assert ErrorClassifier.enrich(original) is original

    @pytest.mark.parametrize(
        ("server_message", "expected"),
        [
            ("Token expired", SESSION_EXPIRED_MESSAGE),
            ("JWT EXPIRED at 12:00", SESSION_EXPIRED_MESSAGE),
            ("Invalid token", AUTH_FAILED_MESSAGE),
            ("", AUTH_FAILED_MESSAGE),
        ],
    )
    def test_auth_failure_message(self, server_message: str, expected: str) -> None:
        assert ErrorClassifier.auth_failure_message(server_message) == expected

    @pytest.mark.parametrize("status", [0, 408, 429, 500, 502, 503, 504])
    def test_retryable(self, status: int) -> None:
        assert is_retryable_status(status)

    @pytest.mark.parametrize("status", [200, 400, 401, 403, 404, 422, 501, 505])
    def test_not_retryable(self, status: int) -> None:
        assert not is_retryable_status(status)
