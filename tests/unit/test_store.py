"""Unit tests for token stores."""

import json
import stat
from pathlib import Path

import pytest

from running_app_client.models import TokenPair
from running_app_client.store import (
    FileTokenStore,
    InMemoryTokenStore,
    TokenStore,
)


@pytest.fixture(params=["memory", "file"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> TokenStore:
    """Provide each store implementation."""
    if request.param == "memory":
        return InMemoryTokenStore()
    return FileTokenStore(tmp_path / "session" / "tokens.json")


class TestTokenStoreContract:
    """Behavior shared by all token stores."""

    def test_empty_by_default(self, store: TokenStore) -> None:
        assert store.get() is None

    def test_set_then_get(self, store: TokenStore, token_pair: TokenPair) -> None:
        store.set(token_pair)

        assert store.get() == token_pair

    def test_set_replaces_whole_pair(self, store: TokenStore, token_pair: TokenPair) -> None:
        store.set(token_pair)
        rotated = TokenPair(access_token="access-2", refresh_token="refresh-2")

        store.set(rotated)

        assert store.get() == rotated

    def test_clear(self, store: TokenStore, token_pair: TokenPair) -> None:
        store.set(token_pair)

        store.clear()
        store.clear()

        assert store.get() is None

    def test_implements_protocol(self, store: TokenStore) -> None:
        assert isinstance(store, TokenStore)


class TestFileTokenStore:
    """File-specific persistence details."""

    def test_document_layout(self, tmp_path: Path, token_pair: TokenPair) -> None:
        path = tmp_path / "tokens.json"
        FileTokenStore(path).set(token_pair)

        assert json.loads(path.read_text()) == {
            "accessToken": "access-1",
            "refreshToken": "refresh-1",
        }

    def test_survives_new_instance(self, tmp_path: Path, token_pair: TokenPair) -> None:
        path = tmp_path / "tokens.json"
        FileTokenStore(path).set(token_pair)

        assert FileTokenStore(path).get() == token_pair

    def test_file_is_private(self, tmp_path: Path, token_pair: TokenPair) -> None:
        path = tmp_path / "tokens.json"
        FileTokenStore(path).set(token_pair)

        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_no_temp_files_left(self, tmp_path: Path, token_pair: TokenPair) -> None:
        store = FileTokenStore(tmp_path / "tokens.json")
        store.set(token_pair)
        store.set(token_pair)

        assert [p.name for p in tmp_path.iterdir()] == ["tokens.json"]

    def test_clear_drops_legacy_keys(self, tmp_path: Path) -> None:
        path = tmp_path / "tokens.json"
        path.write_text(json.dumps({"accessToken": "a", "refreshToken": "r", "authToken": "old"}))

        FileTokenStore(path).clear()

        assert not path.exists()

    @pytest.mark.parametrize(
        "content",
        ["not json", "[]", json.dumps({"accessToken": "a"}), json.dumps({"accessToken": 1, "refreshToken": "r"})],
    )
    def test_unreadable_document(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "tokens.json"
        path.write_text(content)

        assert FileTokenStore(path).get() is None
