"""
Activity feed access with mock-data degradation.

Browsing the feed must keep working while the Backlog integration is down, so
every upstream failure is logged and answered with a fixed sample dataset.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from backlog_bff.clients.backlog_activity import ActivityFetchError, BacklogActivityClient
from backlog_bff.models.activity import ActivityItem, ActivityUser
from backlog_bff.models.oauth import AuthToken

logger = logging.getLogger(__name__)

# (id, project id, project name, type, summary, creator id, creator name, age in days)
_MOCK_ROWS: tuple[tuple[str, str, str, str, str, str, str, int], ...] = (
    ("1", "1", "Project A", "Issue", "Implement login feature", "1", "Taro Yamada", 5),
    ("2", "1", "Project A", "Issue", "Add search feature", "2", "Hanako Sato", 3),
    ("3", "2", "Project B", "Wiki", "Design document", "3", "Ichiro Suzuki", 2),
    ("4", "2", "Project B", "Git", "Bug fix commit", "4", "Jiro Tanaka", 1),
    ("5", "3", "Project C", "Issue", "Improve UI design", "5", "Saburo Takahashi", 0),
)


def mock_activity_items(now: datetime) -> list[ActivityItem]:
    """The fixed sample feed served when the upstream cannot be used."""
    return [
        ActivityItem(
            id=item_id,
            project_id=project_id,
            project_name=project_name,
            type=activity_type,
            content_summary=summary,
            created_user=ActivityUser(id=user_id, name=user_name),
            created=now - timedelta(days=age_days),
        )
        for (
            item_id,
            project_id,
            project_name,
            activity_type,
            summary,
            user_id,
            user_name,
            age_days,
        ) in _MOCK_ROWS
    ]


class ActivityFeedService:
    """Fetch or search the feed for a token, degrading to the sample feed."""

    def __init__(
        self,
        *,
        activity_client: BacklogActivityClient,
        fetch_limit: int = 100,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._client = activity_client
        self._limit = fetch_limit
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def search(self, token: AuthToken | None, keyword: str = "") -> list[ActivityItem]:
        """Matching live items, or the whole sample feed whatever the keyword."""
        if token is None or not token.access_token:
            logger.warning("No usable access token; serving sample activity feed")
            return mock_activity_items(self._clock())
        try:
            return await self._client.search_activities(
                token.access_token, keyword, self._limit
            )
        except ActivityFetchError as exc:
            logger.warning("Activity feed unavailable (%s); serving sample feed", exc)
            return mock_activity_items(self._clock())

    async def fetch_all(self, token: AuthToken | None) -> list[ActivityItem]:
        return await self.search(token, "")


__all__ = ["ActivityFeedService", "mock_activity_items"]
