"""Service layer exports."""

from .activity_feed import ActivityFeedService
from .favorites import AlreadyFavoriteError, FavoritesService
from .item_analysis import ItemAnalysisService
from .token_cipher import TokenCipherService
from .token_lifecycle import TokenLifecycleService

__all__ = [
    "ActivityFeedService",
    "AlreadyFavoriteError",
    "FavoritesService",
    "ItemAnalysisService",
    "TokenCipherService",
    "TokenLifecycleService",
]
