"""Expose constructed client wrappers."""

from .backlog_activity import ActivityFetchError, BacklogActivityClient
from .backlog_auth import BacklogOAuthClient, OAuthStateEncoder
from .dynamodb import DynamoDBFavoriteStore, DynamoDBTokenStore
from .memory_store import InMemoryFavoriteStore, InMemoryTokenStore
from .sqlite_store import SQLiteFavoriteStore, SQLiteTokenStore
from .stores import DuplicateFavoriteError, FavoriteStore, TokenStore

__all__ = [
    "ActivityFetchError",
    "BacklogActivityClient",
    "BacklogOAuthClient",
    "DuplicateFavoriteError",
    "DynamoDBFavoriteStore",
    "DynamoDBTokenStore",
    "FavoriteStore",
    "InMemoryFavoriteStore",
    "InMemoryTokenStore",
    "OAuthStateEncoder",
    "SQLiteFavoriteStore",
    "SQLiteTokenStore",
    "TokenStore",
]
