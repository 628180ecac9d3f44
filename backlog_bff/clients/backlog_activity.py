"""
Client for the Backlog space activity feed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from backlog_bff.core.config import BacklogSettings
from backlog_bff.models.activity import ZERO_TIME, ActivityItem, ActivityUser

logger = logging.getLogger(__name__)

# Activity type codes from the Backlog API documentation.
ACTIVITY_TYPE_LABELS: dict[int, str] = {
    1: "Issue Created",
    2: "Issue Updated",
    3: "Issue Commented",
    4: "Issue Deleted",
    5: "Wiki Created",
    6: "Wiki Updated",
    7: "Wiki Deleted",
    8: "File Added",
    9: "File Updated",
    10: "File Deleted",
    11: "SVN Committed",
    12: "Git Pushed",
    13: "Git Repository Created",
    14: "Issue Multi Updated",
    15: "Project User Added",
    16: "Project User Removed",
    17: "Notification Added",
    18: "Pull Request Added",
    19: "Pull Request Updated",
    20: "Pull Request Commented",
    21: "Pull Request Deleted",
    22: "Milestone Created",
    23: "Milestone Updated",
    24: "Milestone Deleted",
    25: "Project Group Added",
    26: "Project Group Removed",
}


class ActivityFetchError(Exception):
    """Raised when the activity feed cannot be fetched or decoded."""


def activity_type_label(code: Any) -> str:
    """Translate a numeric activity type into its display label."""
    label = ACTIVITY_TYPE_LABELS.get(code) if isinstance(code, int) else None
    return label or f"category({code})"


def _parse_timestamp(raw: Any) -> datetime:
    if not isinstance(raw, str) or not raw:
        return ZERO_TIME
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable activity timestamp %r", raw)
        return ZERO_TIME
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _id_string(value: Any) -> str:
    return "" if value is None else str(value)


def _to_item(activity: dict[str, Any]) -> ActivityItem:
    project = activity.get("project") or {}
    content = activity.get("content") or {}
    created_user = activity.get("createdUser") or {}
    return ActivityItem(
        id=_id_string(activity["id"]),
        project_id=_id_string(project.get("id")),
        project_name=project.get("name") or "",
        type=activity_type_label(activity.get("type")),
        content_summary=content.get("summary") or "",
        created_user=ActivityUser(
            id=_id_string(created_user.get("id")),
            name=created_user.get("name") or "",
        ),
        created=_parse_timestamp(activity.get("created")),
    )


class BacklogActivityClient:
    """Read the space activity feed with a user's bearer token."""

    def __init__(
        self,
        settings: BacklogSettings,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._transport = transport

    async def fetch_activities(self, access_token: str, limit: int) -> list[ActivityItem]:
        """Return up to ``limit`` recent activities in upstream order."""
        url = f"{self._settings.space_base_url}/api/v2/space/activities"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    url,
                    params={"count": limit},
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise ActivityFetchError(f"Activity request failed: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            raise ActivityFetchError(
                f"Failed to get activities, status: {response.status_code}, "
                f"response: {response.text[:200]}"
            )

        try:
            activities = response.json()
            if not isinstance(activities, list):
                raise TypeError("activity payload is not a list")
            return [_to_item(activity) for activity in activities]
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            raise ActivityFetchError(f"Malformed activity payload: {exc}") from exc

    async def search_activities(
        self, access_token: str, keyword: str, limit: int
    ) -> list[ActivityItem]:
        """Fetch the feed and keep items whose searchable fields contain ``keyword``."""
        activities = await self.fetch_activities(access_token, limit)
        if not keyword:
            return activities
        return [activity for activity in activities if activity.matches(keyword)]


__all__ = [
    "ACTIVITY_TYPE_LABELS",
    "ActivityFetchError",
    "BacklogActivityClient",
    "activity_type_label",
]
