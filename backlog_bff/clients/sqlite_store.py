"""SQLite-backed token and favorite storage for single-node deployments."""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from backlog_bff.clients.stores import DuplicateFavoriteError, TokenCipher
from backlog_bff.clients.token_records import token_from_record, token_to_record
from backlog_bff.models.favorite import Favorite
from backlog_bff.models.oauth import AuthToken


class _SQLiteTable(ABC):
    """Shared connection handling; one short-lived connection per operation."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False, timeout=10.0)
        conn.row_factory = sqlite3.Row
        return conn

    @abstractmethod
    def _ensure_schema(self) -> None:
        """Create the table and indexes this store needs."""


class SQLiteTokenStore(_SQLiteTable):
    """Latest token per user, with access and refresh tokens encrypted."""

    def __init__(self, db_path: str, *, cipher: TokenCipher) -> None:
        self._cipher = cipher
        super().__init__(db_path)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS auth_tokens (
                    user_id TEXT PRIMARY KEY,
                    data TEXT NOT NULL
                )
                """
            )

    def save(self, token: AuthToken) -> None:
        if not token.user_id:
            raise ValueError("Token must be bound to a user before it is stored")
        data_json = json.dumps(token_to_record(token, self._cipher))
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO auth_tokens (user_id, data)
                VALUES (?, ?)
                ON CONFLICT(user_id) DO UPDATE SET data = excluded.data
                """,
                (token.user_id, data_json),
            )

    def find(self, user_id: str) -> AuthToken | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM auth_tokens WHERE user_id = ?", (user_id,)
            ).fetchone()
        if not row:
            return None
        return token_from_record(json.loads(row["data"]), self._cipher)

    def delete(self, user_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM auth_tokens WHERE user_id = ?", (user_id,))


class SQLiteFavoriteStore(_SQLiteTable):
    """Favorites keyed by generated id with a secondary index on the user."""

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS favorites (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    item_id TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS favorites_user_id ON favorites (user_id)"
            )
            conn.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS favorites_user_item
                ON favorites (user_id, item_id)
                """
            )

    def find_by_user(self, user_id: str) -> list[Favorite]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, user_id, item_id, created_at FROM favorites
                WHERE user_id = ? ORDER BY created_at
                """,
                (user_id,),
            ).fetchall()
        return [self._to_favorite(row) for row in rows]

    def exists(self, user_id: str, item_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM favorites WHERE user_id = ? AND item_id = ? LIMIT 1",
                (user_id, item_id),
            ).fetchone()
        return row is not None

    def save(self, favorite: Favorite) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO favorites (id, user_id, item_id, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (
                        favorite.id,
                        favorite.user_id,
                        favorite.item_id,
                        favorite.created_at.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateFavoriteError(
                f"Item {favorite.item_id} is already a favorite of user {favorite.user_id}"
            ) from exc

    def delete(self, user_id: str, item_id: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM favorites WHERE user_id = ? AND item_id = ?",
                (user_id, item_id),
            )

    @staticmethod
    def _to_favorite(row: sqlite3.Row) -> Favorite:
        created_at = datetime.fromisoformat(row["created_at"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return Favorite(
            id=row["id"],
            user_id=row["user_id"],
            item_id=row["item_id"],
            created_at=created_at,
        )


__all__ = ["SQLiteFavoriteStore", "SQLiteTokenStore"]
