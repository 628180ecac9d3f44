"""Response schemas for the activity item and favorite endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from backlog_bff.models.activity import AnnotatedItem


class ItemListResponse(BaseModel):
    items: list[AnnotatedItem] = Field(default_factory=list)


class SuccessResponse(BaseModel):
    success: bool = True


__all__ = ["ItemListResponse", "SuccessResponse"]
