try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import threading
import time
from datetime import datetime, timedelta

import pytest

from backlog_bff.clients.memory_store import (
    InMemoryFavoriteStore,
    InMemoryTokenStore,
    ReadWriteLock,
)
from backlog_bff.clients.stores import DuplicateFavoriteError
from backlog_bff.models.favorite import Favorite
from backlog_bff.models.oauth import AuthToken


def test_token_store_keeps_latest_token_per_user(fixed_now: datetime) -> None:
    store = InMemoryTokenStore()
    first = AuthToken(
        access_token="a1", refresh_token="r1", expires_at=fixed_now, user_id="42"
    )
    second = first.model_copy(update={"access_token": "a2"})

    store.save(first)
    store.save(second)

    assert store.find("42") == second
    assert store.find("43") is None

    store.delete("42")
    store.delete("42")
    assert store.find("42") is None


def test_favorite_store_scopes_by_user_and_item(fixed_now: datetime) -> None:
    store = InMemoryFavoriteStore()
    store.save(Favorite(user_id="42", item_id="7", created_at=fixed_now))
    store.save(Favorite(user_id="42", item_id="8", created_at=fixed_now + timedelta(seconds=1)))
    store.save(Favorite(user_id="43", item_id="7", created_at=fixed_now))

    assert [fav.item_id for fav in store.find_by_user("42")] == ["7", "8"]
    assert store.exists("43", "7")
    assert not store.exists("43", "8")

    store.delete("42", "7")

    assert [fav.item_id for fav in store.find_by_user("42")] == ["8"]
    assert store.exists("43", "7")


def test_favorite_store_rejects_duplicate_pair(fixed_now: datetime) -> None:
    store = InMemoryFavoriteStore()
    first = Favorite(user_id="42", item_id="7", created_at=fixed_now)
    store.save(first)

    with pytest.raises(DuplicateFavoriteError):
        store.save(Favorite(user_id="42", item_id="7", created_at=fixed_now))

    assert store.find_by_user("42") == [first]


def test_read_write_lock_allows_concurrent_readers() -> None:
    lock = ReadWriteLock()

    with lock.read():
        with lock.read():
            pass


def test_read_write_lock_writer_waits_for_readers() -> None:
    lock = ReadWriteLock()
    events: list[str] = []

    def writer() -> None:
        with lock.write():
            events.append("write")

    with lock.read():
        thread = threading.Thread(target=writer)
        thread.start()
        time.sleep(0.05)
        assert events == []
        events.append("read-done")

    thread.join(timeout=1)
    assert events == ["read-done", "write"]
