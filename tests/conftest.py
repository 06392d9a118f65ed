"""
Shared test fixtures for the running app client tests.

Network exchanges are served by ``httpx.MockTransport`` handlers defined in
each test; backoff delays are recorded instead of slept.
"""

from collections.abc import Callable
from typing import Any

import httpx
import pytest
from hypothesis import settings

from running_app_client.client import ApiClient
from running_app_client.config import ClientConfig, RetryConfig, TelemetryConfig
from running_app_client.events import AuthEventBus
from running_app_client.models import AuthEvent, TokenPair
from running_app_client.store import InMemoryTokenStore

settings.register_profile("ci", max_examples=100)
settings.register_profile("dev", max_examples=30)
settings.load_profile("dev")

BASE_URL = "https://api.running.test"


@pytest.fixture
def base_config() -> ClientConfig:
    """Provide a basic client configuration for testing."""
    return ClientConfig(
        base_url=BASE_URL,
        timeout=5.0,
        retry=RetryConfig(max_retries=3, base_delay=0.1),
        telemetry=TelemetryConfig(enabled=False),
    )


@pytest.fixture
def token_pair() -> TokenPair:
    """Provide the pair issued at login."""
    return TokenPair(access_token="access-1", refresh_token="refresh-1")


@pytest.fixture
def token_store(token_pair: TokenPair) -> InMemoryTokenStore:
    """Provide a store already holding the login pair."""
    return InMemoryTokenStore(token_pair)


@pytest.fixture
def event_bus() -> AuthEventBus:
    """Provide a fresh auth event bus."""
    return AuthEventBus()


@pytest.fixture
def received_events(event_bus: AuthEventBus) -> list[tuple[str, Any]]:
    """Record every auth event published on event_bus."""
    received: list[tuple[str, Any]] = []
    for name in AuthEvent:
        event_bus.subscribe(name, lambda payload, name=name: received.append((name.value, payload)))
    return received


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff delays requested by the executor."""
    return []


@pytest.fixture
def make_client(
    base_config: ClientConfig,
    token_store: InMemoryTokenStore,
    event_bus: AuthEventBus,
    sleeps: list[float],
) -> Callable[..., ApiClient]:
    """Build an ApiClient whose network exchange is served by handler."""

    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    def factory(handler: Callable[[httpx.Request], Any], **config_overrides: Any) -> ApiClient:
        config = base_config.with_overrides(**config_overrides) if config_overrides else base_config
        return ApiClient(
            config,
            store=token_store,
            events=event_bus,
            transport=httpx.MockTransport(handler),
            sleep=fake_sleep,
        )

    return factory
