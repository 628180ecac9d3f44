"""
Domain models for activity feed items.
"""

from datetime import datetime, timezone

from backlog_bff.models.base import CamelModel

# Stand-in for timestamps the upstream sent in an unparseable form.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


class ActivityUser(CamelModel):
    id: str
    name: str = ""


class ActivityItem(CamelModel):
    """One entry of the Backlog space activity feed."""

    id: str
    project_id: str
    project_name: str
    type: str
    content_summary: str = ""
    created_user: ActivityUser
    created: datetime = ZERO_TIME

    def matches(self, keyword: str) -> bool:
        """Case-sensitive substring match over the searchable fields."""
        if not keyword:
            return True
        return any(
            keyword in field
            for field in (
                self.id,
                self.project_name,
                self.type,
                self.content_summary,
                self.created_user.name,
            )
        )


class AnnotatedItem(ActivityItem):
    """Activity item as shown to a user, flagged when it is one of their favorites."""

    is_favorite: bool = False

    @classmethod
    def from_item(cls, item: ActivityItem, *, is_favorite: bool) -> "AnnotatedItem":
        return cls(**item.model_dump(), is_favorite=is_favorite)


__all__ = ["ActivityItem", "ActivityUser", "AnnotatedItem", "ZERO_TIME"]
