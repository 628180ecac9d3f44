"""
Token lifecycle: authorization-code exchange, refresh-on-expiry and logout.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timezone
from typing import Callable, Tuple

from backlog_bff.clients.backlog_auth import BacklogOAuthClient, UnknownUserError
from backlog_bff.clients.stores import TokenStore
from backlog_bff.models.oauth import AuthToken, BacklogUser

logger = logging.getLogger(__name__)


class TokenLifecycleService:
    """Owns the stored token of every user and the rule for refreshing it.

    A stored token is refreshed the first time it is requested at or after its
    recorded expiry. There is no early-refresh window: the upstream may still
    reject a token before that instant, so a token returned here is only
    advisory until the upstream call is made.
    """

    def __init__(
        self,
        *,
        oauth_client: BacklogOAuthClient,
        token_store: TokenStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._oauth = oauth_client
        self._store = token_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._refresh_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def authorization_url(self, state: str) -> str:
        return self._oauth.build_authorization_url(state=state)

    async def authorize(self, code: str) -> Tuple[AuthToken, BacklogUser]:
        """Exchange ``code``, bind the token to its owner and persist it.

        Raises ``ExchangeFailedError`` or ``ProfileFetchFailedError``; in both
        cases nothing is stored.
        """
        token = await self._oauth.exchange_authorization_code(code)
        user = await self._oauth.fetch_profile(token.access_token)

        bound = token.model_copy(update={"user_id": user.id})
        self._store.save(bound)
        logger.info("Stored OAuth token for Backlog user %s", user.id)
        return bound, user

    async def valid_token(self, user_id: str) -> AuthToken:
        """Return a usable token for ``user_id``, refreshing it when expired.

        Raises ``UnknownUserError`` when nothing is stored and
        ``RefreshFailedError`` when the refresh grant fails; the stored token is
        left untouched in the latter case.
        """
        token = self._store.find(user_id)
        if token is None:
            raise UnknownUserError(f"No OAuth token stored for user {user_id}.")

        if not token.is_expired(self._clock()):
            return token

        # One refresh per user at a time; waiters pick up the rotated token.
        async with self._refresh_lock_for(user_id):
            token = self._store.find(user_id)
            if token is None:
                raise UnknownUserError(f"No OAuth token stored for user {user_id}.")
            if not token.is_expired(self._clock()):
                return token

            logger.info("Access token for user %s expired; refreshing", user_id)
            refreshed = await self._oauth.refresh_token(token.refresh_token)
            replacement = refreshed.model_copy(update={"user_id": user_id})
            self._store.save(replacement)
            return replacement

    def logout(self, user_id: str) -> None:
        self._store.delete(user_id)
        logger.info("Removed OAuth token for user %s", user_id)

    def _refresh_lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._refresh_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._refresh_locks[user_id] = lock
        return lock


__all__ = ["TokenLifecycleService"]
