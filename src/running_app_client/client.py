"""Async API client for the running app.

Route-specific code (runs, goals, races, stats) calls the verb helpers on
``ApiClient``; everything below them (timeouts, retries, bearer tokens and
their renewal) is handled by the request executor.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Self

import httpx
from pydantic import ValidationError

from .config import ClientConfig
from .core import RequestExecutor, TokenRefreshCoordinator
from .errors import InvalidConfigError
from .events import AuthEventBus
from .http import create_async_http_client
from .models import RequestDescriptor, ResponseEnvelope, TokenPair
from .store import FileTokenStore, InMemoryTokenStore, TokenStore
from .telemetry import get_logger


class ApiClient:
    """Asynchronous client with timeout, retry and token refresh support."""

    def __init__(
        self,
        config: ClientConfig,
        *,
        store: TokenStore | None = None,
        events: AuthEventBus | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize client.

        Args:
            config: Client configuration.
            store: Token store; defaults to a file store when
                ``config.token_file`` is set, otherwise in-memory.
            events: Auth event bus; a fresh one is created if omitted.
            transport: Transport for the default HTTP client.
            http_client: Fully configured HTTP client to use instead.
            sleep: Awaitable used for backoff delays.
        """
        self.config = config
        self._owns_http = http_client is None
        self._http = http_client or create_async_http_client(config, transport=transport)

        if store is None:
            store = (
                FileTokenStore(config.token_file)
                if config.token_file
                else InMemoryTokenStore()
            )
        self.store = store
        self.events = events or AuthEventBus()

        self._coordinator = TokenRefreshCoordinator(
            self._http,
            self.store,
            self.events,
            refresh_path=config.refresh_path,
            timeout=config.timeout,
        )
        self._executor = RequestExecutor(
            self._http,
            self.store,
            self._coordinator,
            self.events,
            auth_path_prefix=config.auth_path_prefix,
            sleep=sleep,
        )
        self._logger = get_logger()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http:
            await self._http.aclose()

    @property
    def coordinator(self) -> TokenRefreshCoordinator:
        """Refresh coordinator shared by all requests of this client."""
        return self._coordinator

    def set_tokens(self, access_token: str, refresh_token: str) -> None:
        """Store the pair issued at login or registration."""
        self.store.set(TokenPair(access_token=access_token, refresh_token=refresh_token))

    def logout(self) -> None:
        """Forget the stored tokens."""
        self.store.clear()
        self._logger.info("Tokens cleared")

    @property
    def is_authenticated(self) -> bool:
        """Whether an access token is stored."""
        return self.store.get() is not None

    def build_descriptor(
        self,
        method: str,
        url: str,
        *,
        body: Any = None,
        timeout: float | None = None,
        retries: int | None = None,
        retry_delay: float | None = None,
        requires_auth: bool = True,
        skip_auth: bool = False,
        headers: Mapping[str, str] | None = None,
    ) -> RequestDescriptor:
        """Build a request descriptor, filling unset options from config.

        Raises:
            InvalidConfigError: If an option is out of range.
        """
        try:
            return RequestDescriptor(
                url=url,
                method=method,
                headers=dict(headers or {}),
                body=body,
                timeout=self.config.timeout if timeout is None else timeout,
                retries=self.config.retry.max_retries if retries is None else retries,
                retry_delay=(
                    self.config.retry.base_delay if retry_delay is None else retry_delay
                ),
                requires_auth=requires_auth,
                skip_auth=skip_auth,
            )
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise InvalidConfigError(
                f"Invalid request option {field}: {first['msg']}", field=field
            ) from e

    async def request(self, method: str, url: str, **options: Any) -> ResponseEnvelope[Any]:
        """Perform a request.

        Args:
            method: HTTP method.
            url: Path relative to ``base_url`` or absolute URL.
            **options: ``body``, ``timeout``, ``retries``, ``retry_delay``,
                ``requires_auth``, ``skip_auth``, ``headers``.

        Returns:
            Decoded response envelope.

        Raises:
            ApiError: On terminal failure.
        """
        descriptor = self.build_descriptor(method, url, **options)
        return await self._executor.execute(descriptor)

    async def get(self, url: str, **options: Any) -> ResponseEnvelope[Any]:
        return await self.request("GET", url, **options)

    async def post(self, url: str, body: Any = None, **options: Any) -> ResponseEnvelope[Any]:
        return await self.request("POST", url, body=body, **options)

    async def put(self, url: str, body: Any = None, **options: Any) -> ResponseEnvelope[Any]:
        return await self.request("PUT", url, body=body, **options)

    async def patch(self, url: str, body: Any = None, **options: Any) -> ResponseEnvelope[Any]:
        return await self.request("PATCH", url, body=body, **options)

    async def delete(self, url: str, **options: Any) -> ResponseEnvelope[Any]:
        return await self.request("DELETE", url, **options)
