"""Capability interfaces implemented by every storage backend."""

from __future__ import annotations

from typing import Protocol

from backlog_bff.models.favorite import Favorite
from backlog_bff.models.oauth import AuthToken


class DuplicateFavoriteError(Exception):
    """Raised by a store asked to save a second favorite for the same (user, item)."""


class TokenStore(Protocol):
    """One live token per user id; a save replaces any previous token."""

    def save(self, token: AuthToken) -> None: ...

    def find(self, user_id: str) -> AuthToken | None: ...

    def delete(self, user_id: str) -> None: ...


class FavoriteStore(Protocol):
    """Favorite records addressed by (user id, item id).

    ``save`` raises ``DuplicateFavoriteError`` when the pair is already stored.
    """

    def find_by_user(self, user_id: str) -> list[Favorite]: ...

    def exists(self, user_id: str, item_id: str) -> bool: ...

    def save(self, favorite: Favorite) -> None: ...

    def delete(self, user_id: str, item_id: str) -> None: ...


class TokenCipher(Protocol):
    def encrypt(self, plaintext: str) -> str: ...

    def decrypt(self, ciphertext: str) -> str: ...


__all__ = ["DuplicateFavoriteError", "FavoriteStore", "TokenCipher", "TokenStore"]
