"""AI summaries of single activity items, with a canned answer when no model is configured."""

from __future__ import annotations

import logging
from typing import Any

from backlog_bff.clients.gemini import GeminiClient
from backlog_bff.schemas.analysis import AnalyzeRequest, ItemAnalysis

logger = logging.getLogger(__name__)


def mock_analysis(request: AnalyzeRequest) -> ItemAnalysis:
    return ItemAnalysis(
        summary=f"Summary of \"{request.content}\": this item contains an important update.",
        key_points=[
            "May affect the project schedule",
            "Requires coordination with collaborators",
            "Priority assessed as medium",
        ],
        next_actions=[
            "Share with team members",
            "Update related documents",
            "Check progress regularly",
        ],
    )


def _as_str_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(entry) for entry in value if entry]
    if isinstance(value, str) and value:
        return [value]
    return []


class ItemAnalysisService:
    """Stateless proxy to Gemini; never touches tokens or favorites."""

    def __init__(self, gemini_client: GeminiClient | None) -> None:
        self._gemini = gemini_client

    async def analyze(self, request: AnalyzeRequest) -> ItemAnalysis:
        """Raises ``GeminiModelError`` when a configured model fails."""
        if self._gemini is None:
            logger.info("Gemini is not configured; returning sample analysis")
            return mock_analysis(request)

        payload = await self._gemini.analyze_activity(
            content=request.content,
            project_name=request.project_name,
            activity_type=request.type,
            created_user_name=request.created_user_name,
        )
        if not isinstance(payload, dict):
            payload = {"raw": str(payload)}
        return ItemAnalysis(
            summary=str(payload.get("summary") or payload.get("raw") or ""),
            key_points=_as_str_list(payload.get("keyPoints")),
            next_actions=_as_str_list(payload.get("nextActions")),
        )


__all__ = ["ItemAnalysisService", "mock_analysis"]
