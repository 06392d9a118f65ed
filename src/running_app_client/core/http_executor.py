"""Request executor with timeout, retry and token refresh.

Each call runs as a small state machine:

    PENDING -> DONE | FAILED | RETRYING | REFRESHING_AUTH
    RETRYING -> PENDING            (after exponential backoff)
    REFRESHING_AUTH -> PENDING     (at most once per call)
                    -> FAILED

The number of network calls is bounded by ``retries + 1`` plus one replay
after a successful token refresh.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel

from ..errors import ApiError, AuthError, ErrorCode, InvalidConfigError
from ..models import (
    AuthEvent,
    AuthenticationFailedEvent,
    RequestDescriptor,
    ResponseEnvelope,
)
from ..telemetry import get_logger, trace_operation
from .classifier import ErrorClassifier, is_json_response, is_retryable_status

if TYPE_CHECKING:
    from ..events import AuthEventBus
    from ..store import TokenStore
    from .refresh import TokenRefreshCoordinator


class RequestState(StrEnum):
    """States of a single execute() call."""

    PENDING = "pending"
    RETRYING = "retrying"
    REFRESHING_AUTH = "refreshing_auth"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({RequestState.DONE, RequestState.FAILED})


def calculate_retry_delay(base_delay: float, attempt: int) -> float:
    """Calculate retry delay with exponential backoff.

    Args:
        base_delay: Delay after the first attempt, in seconds.
        attempt: Attempt that just failed (0-indexed).

    Returns:
        Delay in seconds.
    """
    return base_delay * (2**attempt)


@dataclass
class RequestCall:
    """Mutable bookkeeping for one execute() call."""

    descriptor: RequestDescriptor
    content: bytes | str | None = None
    state: RequestState = RequestState.PENDING
    attempt: int = 0
    refreshed: bool = False
    sent_token: str | None = None
    last_error: ApiError | None = None
    result: ResponseEnvelope[Any] | None = None
    history: list[RequestState] = field(default_factory=list)

    def transition(self, state: RequestState) -> None:
        self.history.append(self.state)
        self.state = state


class RequestExecutor:
    """Executes request descriptors against an async HTTP client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: TokenStore,
        coordinator: TokenRefreshCoordinator,
        events: AuthEventBus,
        *,
        auth_path_prefix: str = "/api/auth/",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize the executor.

        Args:
            client: Async HTTP client performing the network exchange.
            store: Token store read before every attempt.
            coordinator: Shared single-flight refresh coordinator.
            events: Auth event bus.
            auth_path_prefix: URLs containing this never trigger a refresh.
            sleep: Awaitable used for backoff delays.
        """
        self._client = client
        self._store = store
        self._coordinator = coordinator
        self._events = events
        self._auth_path_prefix = auth_path_prefix
        self._sleep = sleep
        self._logger = get_logger()
        self._handlers: dict[RequestState, Callable[[RequestCall], Awaitable[None]]] = {
            RequestState.PENDING: self._attempt,
            RequestState.RETRYING: self._backoff,
            RequestState.REFRESHING_AUTH: self._refresh_auth,
        }

    async def execute(self, descriptor: RequestDescriptor) -> ResponseEnvelope[Any]:
        """Execute a request with timeout, retry and refresh handling.

        Args:
            descriptor: Request to perform.

        Returns:
            Decoded response envelope.

        Raises:
            ApiError: Exactly one, describing the terminal failure.
        """
        call = RequestCall(descriptor, content=self._encode_body(descriptor))

        while call.state not in TERMINAL_STATES:
            await self._handlers[call.state](call)

        if call.state is RequestState.FAILED:
            assert call.last_error is not None
            raise call.last_error

        assert call.result is not None
        return call.result

    def is_auth_endpoint(self, url: str) -> bool:
        """Check whether url targets an authentication endpoint."""
        return self._auth_path_prefix in url

    # State handlers

    async def _attempt(self, call: RequestCall) -> None:
        descriptor = call.descriptor
        try:
            headers = self._build_headers(call)
        except AuthError as e:
            self._fail(call, e)
            return

        try:
            with trace_operation(
                "http_request",
                attributes={
                    "http.method": descriptor.method,
                    "http.url": descriptor.url,
                    "attempt": call.attempt,
                },
            ):
                response = await asyncio.wait_for(
                    self._client.request(
                        descriptor.method,
                        descriptor.url,
                        headers=headers,
                        content=call.content,
                    ),
                    timeout=descriptor.timeout,
                )
                if response.is_success:
                    call.result = ResponseEnvelope(
                        data=self._decode(response),
                        status=response.status_code,
                        headers=response.headers,
                    )
                    call.transition(RequestState.DONE)
                    return
            error = ErrorClassifier.from_response(response)
        except Exception as e:
            error = ErrorClassifier.from_exception(e, timeout=descriptor.timeout)

        self._on_failure(call, error)

    async def _backoff(self, call: RequestCall) -> None:
        descriptor = call.descriptor
        delay = calculate_retry_delay(descriptor.retry_delay, call.attempt)
        self._logger.warning(
            "API request failed, retrying",
            url=descriptor.url,
            attempt=call.attempt + 1,
            max_attempts=descriptor.retries + 1,
            status=call.last_error.status if call.last_error else None,
            error=call.last_error.message if call.last_error else None,
            delay=delay,
        )
        await self._sleep(delay)
        call.attempt += 1
        call.transition(RequestState.PENDING)

    async def _refresh_auth(self, call: RequestCall) -> None:
        call.refreshed = True
        renewed = await self._coordinator.refresh(
            stale_access_token=call.sent_token,
            origin_url=call.descriptor.url,
        )

        if renewed and self._store.get() is not None:
            self._logger.info("Replaying request with renewed token", url=call.descriptor.url)
            call.transition(RequestState.PENDING)
            return

        # The coordinator already cleared the store and announced the failure.
        assert call.last_error is not None
        self._end_session(call, call.last_error, announce=False)

    # Transitions

    def _on_failure(self, call: RequestCall, error: ApiError) -> None:
        descriptor = call.descriptor
        call.last_error = error

        if isinstance(error, AuthError) and error.status == 401:
            if not call.refreshed and not self.is_auth_endpoint(descriptor.url):
                call.transition(RequestState.REFRESHING_AUTH)
            else:
                self._end_session(call, error, announce=True)
            return

        if is_retryable_status(error.status) and call.attempt < descriptor.retries:
            call.transition(RequestState.RETRYING)
            return

        final = ErrorClassifier.enrich(error)
        log = self._logger.error if final.status == 0 else self._logger.warning
        log(
            "API error",
            url=descriptor.url,
            method=descriptor.method,
            status=final.status,
            code=final.code,
            attempts=call.attempt + 1,
        )
        self._fail(call, final)

    def _end_session(self, call: RequestCall, error: ApiError, *, announce: bool) -> None:
        descriptor = call.descriptor
        message = ErrorClassifier.auth_failure_message(error.message)
        code = (
            ErrorCode.SESSION_EXPIRED
            if "expired" in error.message.lower()
            else ErrorCode.AUTH_FAILED
        )

        self._store.clear()
        if announce:
            self._events.publish(
                AuthEvent.AUTHENTICATION_FAILED,
                AuthenticationFailedEvent(status=401, message=message, url=descriptor.url),
            )
        self._logger.error(
            "Authentication error",
            status=401,
            url=descriptor.url,
            message=message,
        )

        auth_error = AuthError(message, code, response=error.response, data=error.data)
        auth_error.__cause__ = error
        self._fail(call, auth_error)

    def _fail(self, call: RequestCall, error: ApiError) -> None:
        call.last_error = error
        call.transition(RequestState.FAILED)

    # Helpers

    def _build_headers(self, call: RequestCall) -> httpx.Headers:
        """Build headers for the next attempt, reading the current token."""
        descriptor = call.descriptor
        headers = httpx.Headers()
        if descriptor.body is not None and not descriptor.has_raw_body:
            headers["Content-Type"] = "application/json"
        headers.update(descriptor.headers)

        call.sent_token = None
        if descriptor.skip_auth or not descriptor.requires_auth:
            return headers

        tokens = self._store.get()
        if tokens is None:
            raise AuthError(
                "Authentication required but no token available",
                ErrorCode.AUTH_REQUIRED,
            )
        headers["Authorization"] = f"Bearer {tokens.access_token}"
        call.sent_token = tokens.access_token
        return headers

    @staticmethod
    def _encode_body(descriptor: RequestDescriptor) -> bytes | str | None:
        body = descriptor.body
        if body is None:
            return None
        if isinstance(body, bytearray):
            return bytes(body)
        if descriptor.has_raw_body:
            return body
        if isinstance(body, BaseModel):
            return body.model_dump_json(by_alias=True).encode()
        try:
            return json.dumps(body).encode()
        except (TypeError, ValueError) as e:
            raise InvalidConfigError(
                f"Request body is not JSON serializable: {e}", field="body"
            ) from e

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if response.status_code == 204:
            return None
        if is_json_response(response):
            if not response.content:
                return None
            return response.json()
        return response.text
