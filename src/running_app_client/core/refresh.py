"""Single-flight access token renewal.

However many requests hit a 401 at the same time, at most one refresh call
is outstanding; every caller awaits the same outcome.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx

from ..models import (
    AuthEvent,
    AuthenticationFailedEvent,
    RefreshResponse,
    TokenPair,
    TokenRefreshedEvent,
)
from ..telemetry import get_logger, trace_operation

if TYPE_CHECKING:
    from ..events import AuthEventBus
    from ..store import TokenStore


class TokenRefreshCoordinator:
    """Exchanges the refresh token for a new pair, one attempt at a time."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        store: TokenStore,
        events: AuthEventBus,
        *,
        refresh_path: str = "/api/auth/refresh",
        timeout: float = 10.0,
    ) -> None:
        """Initialize the coordinator.

        Args:
            client: HTTP client used for the refresh call.
            store: Token store read for the refresh token and written on success.
            events: Bus receiving tokenRefreshed/authenticationFailed.
            refresh_path: Refresh endpoint path.
            timeout: Timeout for the refresh call in seconds.
        """
        self._client = client
        self._store = store
        self._events = events
        self._refresh_path = refresh_path
        self._timeout = timeout
        self._lock = asyncio.Lock()
        self._in_flight: asyncio.Task[bool] | None = None
        self._logger = get_logger()

    @property
    def in_progress(self) -> bool:
        """Whether a refresh call is currently outstanding."""
        return self._in_flight is not None

    async def refresh(
        self,
        stale_access_token: str | None = None,
        *,
        origin_url: str | None = None,
    ) -> bool:
        """Renew the token pair, joining an outstanding refresh if there is one.

        Args:
            stale_access_token: Access token the caller's rejected request was
                sent with. If the store already holds a different one, a
                refresh finished in the meantime and no new call is made;
                if the store is empty, the session already ended.
            origin_url: URL of the request whose 401 triggered the refresh,
                reported in the authenticationFailed event. Only the caller
                that starts the refresh supplies it; joiners share its outcome.

        Returns:
            True if usable tokens are stored, False if the session is over.
        """
        async with self._lock:
            if self._in_flight is None:
                current = self._store.get()
                if stale_access_token is not None:
                    if current is None:
                        # A refresh already failed and ended the session.
                        return False
                    if current.access_token != stale_access_token:
                        self._logger.debug("Access token already renewed, skipping refresh")
                        return True

                self._in_flight = asyncio.create_task(self._run(origin_url))
                self._in_flight.add_done_callback(self._release)
            task = self._in_flight

        # A cancelled waiter must not cancel the refresh other callers share.
        return await asyncio.shield(task)

    def _release(self, task: asyncio.Task[bool]) -> None:
        if self._in_flight is task:
            self._in_flight = None

    async def _run(self, origin_url: str | None) -> bool:
        try:
            return await self._refresh_once(origin_url)
        except Exception:
            self._logger.exception("Unexpected token refresh failure")
            self._fail("Token refresh failed", url=origin_url)
            return False

    async def _refresh_once(self, origin_url: str | None) -> bool:
        tokens = self._store.get()
        if tokens is None:
            self._fail("No refresh token available", url=origin_url)
            return False

        with trace_operation("token_refresh", attributes={"http.url": self._refresh_path}):
            try:
                response = await asyncio.wait_for(
                    self._client.post(
                        self._refresh_path,
                        json={"refreshToken": tokens.refresh_token},
                    ),
                    self._timeout,
                )
            except (httpx.HTTPError, asyncio.TimeoutError) as e:
                self._logger.warning(
                    "Token refresh request failed",
                    error_type=type(e).__name__,
                    error=str(e),
                )
                self._fail("Token refresh failed", url=origin_url)
                return False

            if not response.is_success:
                self._logger.warning(
                    "Token refresh rejected",
                    status=response.status_code,
                )
                self._fail("Failed to refresh token", url=origin_url)
                return False

            try:
                body = RefreshResponse.model_validate(response.json())
            except ValueError as e:
                self._logger.warning("Malformed token refresh response", error=str(e))
                self._fail("Token refresh failed", url=origin_url)
                return False

        # The server may keep the refresh token and only issue a new access token.
        renewed = TokenPair(
            access_token=body.access_token,
            refresh_token=body.refresh_token or tokens.refresh_token,
        )
        self._store.set(renewed)
        self._logger.info("Access token refreshed")
        self._events.publish(
            AuthEvent.TOKEN_REFRESHED,
            TokenRefreshedEvent(access_token=renewed.access_token),
        )
        return True

    def _fail(self, message: str, *, url: str | None) -> None:
        """Clear the session and announce it on behalf of the rejected request."""
        self._store.clear()
        self._events.publish(
            AuthEvent.AUTHENTICATION_FAILED,
            AuthenticationFailedEvent(
                message=message,
                status=401,
                url=url or self._refresh_path,
            ),
        )
