"""Token persistence.

A token store holds zero or one ``TokenPair``. Replacing the pair is atomic;
there is no history.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from .models import TokenPair
from .telemetry import get_logger

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"


@runtime_checkable
class TokenStore(Protocol):
    """Persistent read/write/clear of the current token pair."""

    def get(self) -> TokenPair | None:
        """Return the stored pair, if any."""
        ...

    def set(self, tokens: TokenPair) -> None:
        """Replace the stored pair."""
        ...

    def clear(self) -> None:
        """Forget the stored pair."""
        ...


class InMemoryTokenStore:
    """Process-local token store, mainly for tests and short-lived scripts."""

    def __init__(self, tokens: TokenPair | None = None) -> None:
        self._lock = threading.Lock()
        self._tokens = tokens

    def get(self) -> TokenPair | None:
        with self._lock:
            return self._tokens

    def set(self, tokens: TokenPair) -> None:
        with self._lock:
            self._tokens = tokens

    def clear(self) -> None:
        with self._lock:
            self._tokens = None


class FileTokenStore:
    """Token store backed by a small JSON document on disk.

    The document has two keys, ``accessToken`` and ``refreshToken``. Writes go
    to a sibling temp file which then replaces the original, so readers see
    either the old pair or the new one. Clearing removes the whole file,
    which also drops keys left behind by older client versions.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._logger = get_logger()

    def get(self) -> TokenPair | None:
        with self._lock:
            try:
                raw = self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None

            try:
                data = json.loads(raw)
                access = data.get(ACCESS_TOKEN_KEY)
                refresh = data.get(REFRESH_TOKEN_KEY)
                if not access or not refresh:
                    return None
                return TokenPair(access_token=access, refresh_token=refresh)
            except (ValueError, AttributeError, ValidationError) as e:
                self._logger.warning(
                    "Ignoring unreadable token file",
                    path=str(self.path),
                    error=type(e).__name__,
                )
                return None

    def set(self, tokens: TokenPair) -> None:
        payload = json.dumps(
            {
                ACCESS_TOKEN_KEY: tokens.access_token,
                REFRESH_TOKEN_KEY: tokens.refresh_token,
            }
        )
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.chmod(tmp_name, 0o600)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

    def clear(self) -> None:
        with self._lock:
            self.path.unlink(missing_ok=True)
