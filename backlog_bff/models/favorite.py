"""
Domain model for a user's bookmarked activity item.
"""

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import Field

from backlog_bff.models.base import CamelModel


class Favorite(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    item_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = ["Favorite"]
