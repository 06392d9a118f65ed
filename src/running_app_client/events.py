"""Publish/subscribe channel for authentication events.

Session management code outside the request layer subscribes here to react
to refreshed tokens or a terminated session (e.g. by showing a login
screen). Each ``ApiClient`` owns its own bus.
"""

from __future__ import annotations

import inspect
import threading
from collections.abc import Callable

from pydantic import BaseModel

from .models import AuthEvent
from .telemetry import get_logger

# Listeners are plain callables; they run synchronously inside publish().
Listener = Callable[[BaseModel], None]


class AuthEventBus:
    """Observer list keyed by event name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[AuthEvent, list[Listener]] = {}
        self._logger = get_logger()

    def subscribe(self, event: AuthEvent | str, listener: Listener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it.

        Raises:
            TypeError: If listener is a coroutine function; publish() never
                awaits, so its body would not run.
        """
        if inspect.iscoroutinefunction(listener):
            msg = "Auth event listeners must be synchronous callables"
            raise TypeError(msg)
        name = AuthEvent(event)
        with self._lock:
            self._listeners.setdefault(name, []).append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(name, [])
                if listener in listeners:
                    listeners.remove(listener)

        return unsubscribe

    def publish(self, event: AuthEvent | str, payload: BaseModel) -> None:
        """Deliver payload to every listener of event.

        Never raises: a failing listener is logged and the remaining
        listeners still run.
        """
        name = AuthEvent(event)
        with self._lock:
            listeners = list(self._listeners.get(name, ()))

        self._logger.debug("Publishing auth event", auth_event=name.value, listeners=len(listeners))
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                self._logger.exception("Auth event listener failed", auth_event=name.value)

    def listener_count(self, event: AuthEvent | str) -> int:
        """Number of listeners registered for event."""
        with self._lock:
            return len(self._listeners.get(AuthEvent(event), ()))
