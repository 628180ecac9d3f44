"""Schemas related to OAuth flows."""

from __future__ import annotations

from pydantic import BaseModel, Field

from backlog_bff.models.oauth import AuthToken, BacklogUser


class AuthorizationURLResponse(BaseModel):
    url: str = Field(..., description="Backlog consent screen URL.")
    state: str = Field(..., description="Signed state the callback must echo back.")


class AuthCallbackResponse(BaseModel):
    """Returned to API clients that do not follow the front-end redirect."""

    token: AuthToken
    user: BacklogUser


__all__ = ["AuthCallbackResponse", "AuthorizationURLResponse"]
