"""Error classes for the running app client.

Every failed request surfaces as exactly one ``ApiError`` subclass carrying
the HTTP status (0 for transport failures), a human readable message and,
when available, the raw ``httpx.Response`` and its decoded body.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx


class ErrorCode(StrEnum):
    """Standardized error codes."""

    # Authentication errors (1xxx)
    AUTH_REQUIRED = "AUTH_1001"
    AUTH_FAILED = "AUTH_1002"
    SESSION_EXPIRED = "AUTH_1003"

    # Client errors (2xxx)
    CLIENT_ERROR = "CLI_2001"
    FORBIDDEN = "CLI_2002"
    NOT_FOUND = "CLI_2003"
    INVALID_INPUT = "CLI_2004"
    INVALID_CONFIG = "CLI_2005"

    # Network errors (3xxx)
    NETWORK_ERROR = "NET_3001"
    TIMEOUT_ERROR = "NET_3002"

    # Rate limiting (4xxx)
    RATE_LIMITED = "RATE_4001"

    # Server errors (5xxx)
    SERVER_ERROR = "SRV_5001"

    UNKNOWN_ERROR = "UNK_9001"


class ApiError(Exception):
    """Base error for all failed API requests."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str = ErrorCode.UNKNOWN_ERROR,
        *,
        status: int | None = None,
        response: httpx.Response | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = str(code)
        self.status = status
        self.response = response
        self.data = data

    def with_message(self, message: str) -> ApiError:
        """Copy of this error with a different message, same class and payload."""
        clone = self.__class__.__new__(self.__class__)
        ApiError.__init__(
            clone,
            message,
            self.code,
            status=self.status,
            response=self.response,
            data=self.data,
        )
        clone.__cause__ = self.__cause__
        return clone

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.message,
            "code": self.code,
            "status": self.status,
            "data": self.data,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}"
            f"(status={self.status!r}, code={self.code!r}, message={self.message!r})"
        )


class TransportError(ApiError):
    """DNS, connection or decoding failure; no usable HTTP status."""

    def __init__(
        self,
        message: str = "Network error",
        *,
        data: Any = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.NETWORK_ERROR, status=0, data=data)
        self.__cause__ = cause


class TimeoutError(ApiError):
    """Request did not complete before its timeout."""

    def __init__(
        self,
        message: str = "Request timeout",
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.TIMEOUT_ERROR,
            status=408,
            data={"timeout_seconds": timeout_seconds} if timeout_seconds else None,
        )


class RetryableServerError(ApiError):
    """Transient server-side condition (408, 429, 500, 502, 503, 504)."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        response: httpx.Response | None = None,
        data: Any = None,
    ) -> None:
        code = ErrorCode.RATE_LIMITED if status == 429 else ErrorCode.SERVER_ERROR
        super().__init__(message, code, status=status, response=response, data=data)


class AuthError(ApiError):
    """Missing, expired or rejected credentials."""

    def __init__(
        self,
        message: str = "Authentication failed. Please log in again.",
        code: ErrorCode = ErrorCode.AUTH_FAILED,
        *,
        response: httpx.Response | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message, code, status=401, response=response, data=data)


class ClientError(ApiError):
    """Non-retryable 4xx response."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        response: httpx.Response | None = None,
        data: Any = None,
    ) -> None:
        codes = {
            403: ErrorCode.FORBIDDEN,
            404: ErrorCode.NOT_FOUND,
            422: ErrorCode.INVALID_INPUT,
        }
        super().__init__(
            message,
            codes.get(status, ErrorCode.CLIENT_ERROR),
            status=status,
            response=response,
            data=data,
        )


class UnknownError(ApiError):
    """Any other non-2xx response."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        response: httpx.Response | None = None,
        data: Any = None,
    ) -> None:
        code = ErrorCode.SERVER_ERROR if status >= 500 else ErrorCode.UNKNOWN_ERROR
        super().__init__(message, code, status=status, response=response, data=data)


class InvalidConfigError(ApiError):
    """Invalid client configuration."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_CONFIG,
            data={"field": field} if field else None,
        )
