"""
Favorites overlay: annotate activity items with the caller's bookmarks and
manage those bookmarks.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from backlog_bff.clients.stores import DuplicateFavoriteError, FavoriteStore
from backlog_bff.models.activity import ActivityItem, AnnotatedItem
from backlog_bff.models.favorite import Favorite
from backlog_bff.services.activity_feed import ActivityFeedService
from backlog_bff.services.token_lifecycle import TokenLifecycleService

logger = logging.getLogger(__name__)

_LOCK_STRIPES = 64


class AlreadyFavoriteError(Exception):
    """Raised when a user bookmarks an item that is already bookmarked."""


class FavoritesService:
    """Merge the activity feed with a user's favorites.

    Read paths validate the caller's token first, so ``UnknownUserError`` and
    ``RefreshFailedError`` propagate unchanged. Feed failures never surface
    here; ``ActivityFeedService`` answers them with sample data. Favorite store
    errors propagate.
    """

    def __init__(
        self,
        *,
        token_service: TokenLifecycleService,
        activity_feed: ActivityFeedService,
        favorite_store: FavoriteStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._tokens = token_service
        self._feed = activity_feed
        self._store = favorite_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # Users share a fixed set of locks so the set never grows with the user base.
        self._user_locks = tuple(threading.Lock() for _ in range(_LOCK_STRIPES))

    async def search_items(self, user_id: str, keyword: str = "") -> list[AnnotatedItem]:
        """Feed items matching ``keyword`` in upstream order, favorites flagged."""
        token = await self._tokens.valid_token(user_id)
        items = await self._feed.search(token, keyword)
        favorite_ids = self._favorite_item_ids(user_id)
        return [
            AnnotatedItem.from_item(item, is_favorite=item.id in favorite_ids)
            for item in items
        ]

    async def get_favorites(self, user_id: str) -> list[AnnotatedItem]:
        """Feed items the user has bookmarked; the feed is skipped when there are none."""
        token = await self._tokens.valid_token(user_id)
        favorite_ids = self._favorite_item_ids(user_id)
        if not favorite_ids:
            return []

        items: list[ActivityItem] = await self._feed.fetch_all(token)
        return [
            AnnotatedItem.from_item(item, is_favorite=True)
            for item in items
            if item.id in favorite_ids
        ]

    async def add_favorite(self, user_id: str, item_id: str) -> Favorite:
        await self._tokens.valid_token(user_id)
        # exists + save must not interleave with another add for the same user.
        with self._lock_for(user_id):
            if self._store.exists(user_id, item_id):
                logger.info("Item %s is already a favorite of user %s", item_id, user_id)
                raise AlreadyFavoriteError(
                    f"Item {item_id} is already a favorite of user {user_id}."
                )
            favorite = Favorite(user_id=user_id, item_id=item_id, created_at=self._clock())
            try:
                self._store.save(favorite)
            except DuplicateFavoriteError as exc:
                logger.info("Item %s was stored concurrently for user %s", item_id, user_id)
                raise AlreadyFavoriteError(
                    f"Item {item_id} is already a favorite of user {user_id}."
                ) from exc
        return favorite

    async def remove_favorite(self, user_id: str, item_id: str) -> None:
        await self._tokens.valid_token(user_id)
        with self._lock_for(user_id):
            self._store.delete(user_id, item_id)

    def _favorite_item_ids(self, user_id: str) -> set[str]:
        return {favorite.item_id for favorite in self._store.find_by_user(user_id)}

    def _lock_for(self, user_id: str) -> threading.Lock:
        return self._user_locks[hash(user_id) % len(self._user_locks)]


__all__ = ["AlreadyFavoriteError", "FavoritesService"]
