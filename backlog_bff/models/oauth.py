"""
Domain models for OAuth tokens and the upstream user profile.
"""

from datetime import datetime

from pydantic import Field

from backlog_bff.models.base import CamelModel


class AuthToken(CamelModel):
    """The current OAuth token held for one user."""

    access_token: str
    token_type: str = "Bearer"
    refresh_token: str
    expires_at: datetime = Field(..., description="Absolute expiry, timezone-aware UTC.")
    user_id: str = Field("", description="Backlog user id the token is bound to.")

    def is_expired(self, now: datetime) -> bool:
        """A token is unusable from the instant of its recorded expiry onwards."""
        return now >= self.expires_at


class BacklogUser(CamelModel):
    """Profile snapshot returned by ``/api/v2/users/myself``."""

    id: str
    name: str = ""
    role_type: int = 0
    lang: str | None = None
    mail_address: str = ""


__all__ = ["AuthToken", "BacklogUser"]
