"""
Explicit construction of every stateful component.

The container is built once per application lifespan and handed to routes
through FastAPI dependencies; nothing here is cached at module level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from backlog_bff.clients import (
    BacklogActivityClient,
    BacklogOAuthClient,
    DynamoDBFavoriteStore,
    DynamoDBTokenStore,
    FavoriteStore,
    InMemoryFavoriteStore,
    InMemoryTokenStore,
    OAuthStateEncoder,
    SQLiteFavoriteStore,
    SQLiteTokenStore,
    TokenStore,
)
from backlog_bff.clients.dynamodb import create_resource, ensure_tables
from backlog_bff.clients.gemini import GeminiClient
from backlog_bff.core.config import AppSettings
from backlog_bff.services import (
    ActivityFeedService,
    FavoritesService,
    ItemAnalysisService,
    TokenCipherService,
    TokenLifecycleService,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ServiceContainer:
    """Everything the routes need, wired for one application instance."""

    settings: AppSettings
    state_encoder: OAuthStateEncoder
    token_service: TokenLifecycleService
    favorites_service: FavoritesService
    analysis_service: ItemAnalysisService


def build_stores(settings: AppSettings) -> tuple[TokenStore, FavoriteStore]:
    """Create the token and favorite stores for the configured backend."""
    storage = settings.storage
    logger.info("Using %s storage backend", storage.backend)

    if storage.backend == "memory":
        return InMemoryTokenStore(), InMemoryFavoriteStore()

    cipher = TokenCipherService.from_settings(settings)
    if storage.backend == "sqlite":
        return (
            SQLiteTokenStore(storage.sqlite_path, cipher=cipher),
            SQLiteFavoriteStore(storage.sqlite_path),
        )

    resource = create_resource(storage)
    if storage.create_tables:
        ensure_tables(resource, storage)
    return (
        DynamoDBTokenStore(storage, cipher=cipher, resource=resource),
        DynamoDBFavoriteStore(storage, resource=resource),
    )


def build_container(
    settings: AppSettings,
    *,
    oauth_client: Optional[BacklogOAuthClient] = None,
    activity_client: Optional[BacklogActivityClient] = None,
    token_store: Optional[TokenStore] = None,
    favorite_store: Optional[FavoriteStore] = None,
    gemini_client: Optional[GeminiClient] = None,
) -> ServiceContainer:
    """Wire the application; any collaborator may be supplied pre-built."""
    if token_store is None or favorite_store is None:
        default_tokens, default_favorites = build_stores(settings)
        token_store = token_store or default_tokens
        favorite_store = favorite_store or default_favorites

    timeout = settings.http_timeout_seconds
    oauth_client = oauth_client or BacklogOAuthClient(settings.backlog, timeout=timeout)
    activity_client = activity_client or BacklogActivityClient(
        settings.backlog, timeout=timeout
    )
    if gemini_client is None and settings.gemini.api_key:
        gemini_client = GeminiClient(settings.gemini)

    token_service = TokenLifecycleService(oauth_client=oauth_client, token_store=token_store)
    activity_feed = ActivityFeedService(
        activity_client=activity_client,
        fetch_limit=settings.activity_fetch_limit,
    )
    return ServiceContainer(
        settings=settings,
        state_encoder=OAuthStateEncoder(
            secret_key=settings.backlog.client_secret,
            ttl_seconds=settings.oauth.state_ttl_seconds,
        ),
        token_service=token_service,
        favorites_service=FavoritesService(
            token_service=token_service,
            activity_feed=activity_feed,
            favorite_store=favorite_store,
        ),
        analysis_service=ItemAnalysisService(gemini_client),
    )


__all__ = ["ServiceContainer", "build_container", "build_stores"]
