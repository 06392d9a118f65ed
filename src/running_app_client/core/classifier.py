"""Error classification for the request executor.

Turns raw outcomes (an ``httpx.Response`` or an exception) into the typed
``ApiError`` hierarchy. Pure: it only reads responses whose bodies are
already loaded and keeps no state.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from ..errors import (
    ApiError,
    AuthError,
    ClientError,
    ErrorCode,
    RetryableServerError,
    TimeoutError,
    TransportError,
    UnknownError,
)

RETRYABLE_STATUSES = frozenset({0, 408, 429, 500, 502, 503, 504})

SESSION_EXPIRED_MESSAGE = "Your session has expired. Please log in again."
AUTH_FAILED_MESSAGE = "Authentication failed. Please log in again."

ENRICHED_MESSAGES = {
    403: "You do not have permission to perform this action.",
    404: "The requested resource was not found.",
    422: "Invalid data provided. Please check your input.",
}
SERVER_ERROR_MESSAGE = "Server error. Please try again later."


def is_retryable_status(status: int | None) -> bool:
    """Check if a status (0 meaning transport failure) should be retried."""
    return (status or 0) in RETRYABLE_STATUSES


def is_json_response(response: httpx.Response) -> bool:
    """Check the declared content type for JSON."""
    return "application/json" in response.headers.get("content-type", "")


class ErrorClassifier:
    """Maps transport and HTTP outcomes onto ``ApiError`` subclasses."""

    @staticmethod
    def classify(
        outcome: httpx.Response | BaseException,
        *,
        timeout: float | None = None,
    ) -> ApiError:
        """Classify a failed response or a raised exception.

        Args:
            outcome: Non-2xx response, or the exception raised while sending.
            timeout: Timeout in effect, recorded on timeout errors.

        Returns:
            Appropriate ApiError subclass.
        """
        if isinstance(outcome, httpx.Response):
            return ErrorClassifier.from_response(outcome)
        return ErrorClassifier.from_exception(outcome, timeout=timeout)

    @staticmethod
    def extract_error_body(response: httpx.Response) -> tuple[str, Any]:
        """Pull a message and the decoded body out of an error response.

        The server's ``message`` or ``error`` field wins; otherwise the
        message is ``HTTP <status>: <reason>``.
        """
        message = f"HTTP {response.status_code}: {response.reason_phrase}"

        if not is_json_response(response):
            return message, {"message": response.text}

        try:
            data = response.json()
        except ValueError:
            return message, {"message": message}

        if isinstance(data, dict):
            server_message = data.get("message") or data.get("error")
            if isinstance(server_message, str) and server_message:
                message = server_message
        return message, data

    @staticmethod
    def from_response(response: httpx.Response) -> ApiError:
        """Create an error from a non-2xx HTTP response."""
        status = response.status_code
        message, data = ErrorClassifier.extract_error_body(response)

        if status == 401:
            code = (
                ErrorCode.SESSION_EXPIRED
                if "expired" in message.lower()
                else ErrorCode.AUTH_FAILED
            )
            return AuthError(message, code, response=response, data=data)

        if is_retryable_status(status):
            return RetryableServerError(
                message, status=status, response=response, data=data
            )

        if 400 <= status < 500:
            return ClientError(message, status=status, response=response, data=data)

        return UnknownError(message, status=status, response=response, data=data)

    @staticmethod
    def from_exception(
        exc: BaseException,
        *,
        timeout: float | None = None,
    ) -> ApiError:
        """Create an error from an exception raised while sending or decoding."""
        if isinstance(exc, ApiError):
            return exc

        if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
            error = TimeoutError(timeout_seconds=timeout)
            error.__cause__ = exc
            return error

        message = str(exc) or "Network error"
        return TransportError(
            message,
            data={"original_error": repr(exc)},
            cause=exc,
        )

    @staticmethod
    def auth_failure_message(message: str) -> str:
        """User-facing message for a rejected session."""
        if "expired" in message.lower():
            return SESSION_EXPIRED_MESSAGE
        return AUTH_FAILED_MESSAGE

    @staticmethod
    def enrich(error: ApiError) -> ApiError:
        """Replace the message of common statuses with a clearer one."""
        status = error.status or 0
        if status in ENRICHED_MESSAGES:
            return error.with_message(ENRICHED_MESSAGES[status])
        if status >= 500:
            return error.with_message(SERVER_ERROR_MESSAGE)
        return error
