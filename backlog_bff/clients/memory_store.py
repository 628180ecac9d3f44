"""Process-local storage backends guarded by a read/write lock."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from backlog_bff.clients.stores import DuplicateFavoriteError
from backlog_bff.models.favorite import Favorite
from backlog_bff.models.oauth import AuthToken


class ReadWriteLock:
    """Many concurrent readers or one writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class InMemoryTokenStore:
    """Volatile token table keyed by user id."""

    def __init__(self) -> None:
        self._tokens: dict[str, AuthToken] = {}
        self._lock = ReadWriteLock()

    def save(self, token: AuthToken) -> None:
        with self._lock.write():
            self._tokens[token.user_id] = token

    def find(self, user_id: str) -> AuthToken | None:
        with self._lock.read():
            return self._tokens.get(user_id)

    def delete(self, user_id: str) -> None:
        with self._lock.write():
            self._tokens.pop(user_id, None)


class InMemoryFavoriteStore:
    """Volatile favorites table."""

    def __init__(self) -> None:
        self._favorites: list[Favorite] = []
        self._lock = ReadWriteLock()

    def find_by_user(self, user_id: str) -> list[Favorite]:
        with self._lock.read():
            return [fav for fav in self._favorites if fav.user_id == user_id]

    def exists(self, user_id: str, item_id: str) -> bool:
        with self._lock.read():
            return any(
                fav.user_id == user_id and fav.item_id == item_id
                for fav in self._favorites
            )

    def save(self, favorite: Favorite) -> None:
        with self._lock.write():
            if any(
                fav.user_id == favorite.user_id and fav.item_id == favorite.item_id
                for fav in self._favorites
            ):
                raise DuplicateFavoriteError(
                    f"Item {favorite.item_id} is already a favorite of user {favorite.user_id}."
                )
            self._favorites.append(favorite)

    def delete(self, user_id: str, item_id: str) -> None:
        with self._lock.write():
            self._favorites = [
                fav
                for fav in self._favorites
                if not (fav.user_id == user_id and fav.item_id == item_id)
            ]


__all__ = ["InMemoryFavoriteStore", "InMemoryTokenStore", "ReadWriteLock"]
