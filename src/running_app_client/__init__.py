"""Running app API client with resilient request handling."""

from .client import ApiClient
from .config import ClientConfig, RetryConfig, TelemetryConfig
from .errors import (
    ApiError,
    AuthError,
    ClientError,
    ErrorCode,
    InvalidConfigError,
    RetryableServerError,
    TimeoutError,
    TransportError,
    UnknownError,
)
from .events import AuthEventBus
from .models import (
    AuthEvent,
    AuthenticationFailedEvent,
    RequestDescriptor,
    ResponseEnvelope,
    TokenPair,
    TokenRefreshedEvent,
)
from .store import FileTokenStore, InMemoryTokenStore, TokenStore
from .telemetry import configure_telemetry

__all__ = [
    "ApiClient",
    "ClientConfig",
    "RetryConfig",
    "TelemetryConfig",
    "ApiError",
    "AuthError",
    "ClientError",
    "ErrorCode",
    "InvalidConfigError",
    "RetryableServerError",
    "TimeoutError",
    "TransportError",
    "UnknownError",
    "AuthEventBus",
    "AuthEvent",
    "AuthenticationFailedEvent",
    "RequestDescriptor",
    "ResponseEnvelope",
    "TokenPair",
    "TokenRefreshedEvent",
    "FileTokenStore",
    "InMemoryTokenStore",
    "TokenStore",
    "configure_telemetry",
]

__version__ = "0.1.0"
