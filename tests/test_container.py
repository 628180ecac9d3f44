try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from pathlib import Path

import pytest

from backlog_bff.clients import (
    InMemoryFavoriteStore,
    InMemoryTokenStore,
    SQLiteFavoriteStore,
    SQLiteTokenStore,
)
from backlog_bff.core.config import AppSettings
from backlog_bff.dependencies.container import build_container, build_stores


def test_memory_backend_by_default(app_settings: AppSettings) -> None:
    token_store, favorite_store = build_stores(app_settings)

    assert isinstance(token_store, InMemoryTokenStore)
    assert isinstance(favorite_store, InMemoryFavoriteStore)


def test_sqlite_backend(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("STORAGE_BACKEND", "sqlite")
    monkeypatch.setenv("SQLITE_PATH", str(tmp_path / "bff.db"))

    token_store, favorite_store = build_stores(AppSettings())  # type: ignore[call-arg]

    assert isinstance(token_store, SQLiteTokenStore)
    assert isinstance(favorite_store, SQLiteFavoriteStore)
    assert (tmp_path / "bff.db").exists()


def test_container_shares_token_service(app_settings: AppSettings) -> None:
    container = build_container(app_settings)

    assert container.settings is app_settings
    # Favorites must see the same tokens the OAuth flow stores.
    assert container.favorites_service._tokens is container.token_service
