"""Schemas for the activity item analysis endpoint."""

from __future__ import annotations

from pydantic import Field

from backlog_bff.models.base import CamelModel


class AnalyzeRequest(CamelModel):
    """Activity item fields forwarded by the front-end for analysis."""

    item_id: str = Field("", description="Activity item identifier.")
    content: str = Field(..., min_length=1, description="Content summary of the item.")
    project_name: str = ""
    type: str = ""
    created_user_name: str = ""


class ItemAnalysis(CamelModel):
    summary: str
    key_points: list[str] = Field(default_factory=list)
    next_actions: list[str] = Field(default_factory=list)


class AnalyzeResponse(CamelModel):
    analysis: ItemAnalysis


__all__ = ["AnalyzeRequest", "AnalyzeResponse", "ItemAnalysis"]
