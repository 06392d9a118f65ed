"""Core components of the resilient request layer.

Error classification, single-flight token refresh and the request
executor state machine.
"""

from __future__ import annotations

from .classifier import ErrorClassifier, is_retryable_status
from .http_executor import RequestExecutor, RequestState, calculate_retry_delay
from .refresh import TokenRefreshCoordinator

__all__ = [
    "ErrorClassifier",
    "is_retryable_status",
    "RequestExecutor",
    "RequestState",
    "calculate_retry_delay",
    "TokenRefreshCoordinator",
]
