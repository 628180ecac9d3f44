"""
Backlog OAuth utilities.

These helpers manage the user authentication flow, the token refresh grant and
the profile lookup used to bind a token to a Backlog user.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import secrets
from datetime import datetime, timedelta, timezone
from hashlib import sha256
from typing import Any, Callable, Dict
from urllib.parse import urlencode

import httpx

from backlog_bff.core.config import BacklogSettings
from backlog_bff.models.oauth import AuthToken, BacklogUser


class OAuthStateError(ValueError):
    """Raised when a callback carries a state value this service did not issue."""


class ExchangeFailedError(Exception):
    """Raised when the token endpoint rejects an authorization code."""


class RefreshFailedError(Exception):
    """Raised when the token endpoint rejects a refresh token."""


class ProfileFetchFailedError(Exception):
    """Raised when the authenticated user's profile cannot be loaded."""


class UnknownUserError(Exception):
    """Raised when no persisted OAuth token is available for a user."""


class OAuthStateEncoder:
    """Issue and verify signed, expiring OAuth state values."""

    def __init__(
        self,
        secret_key: str,
        *,
        ttl_seconds: int = 900,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._secret_key = secret_key.encode("utf-8")
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def issue(self) -> str:
        """Create a fresh state carrying a random nonce and its issue time."""
        return self.encode(
            {
                "nonce": secrets.token_urlsafe(16),
                "issued_at": self._clock().isoformat(),
            }
        )

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise OAuthStateError("Malformed OAuth state.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise OAuthStateError("Invalid OAuth state signature.")
        return json.loads(serialized)

    def verify(self, token: str) -> Dict[str, Any]:
        """Decode a state and reject it once its time-to-live has elapsed."""
        payload = self.decode(token)
        try:
            issued_at = datetime.fromisoformat(payload["issued_at"])
        except (KeyError, TypeError, ValueError) as exc:
            raise OAuthStateError("OAuth state is missing its issue time.") from exc
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)
        if self._clock() - issued_at > self._ttl:
            raise OAuthStateError("OAuth state has expired.")
        return payload


class BacklogOAuthClient:
    """Build Backlog authorization URLs and talk to the token endpoint."""

    def __init__(
        self,
        settings: BacklogSettings,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._transport = transport
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def build_authorization_url(self, state: str) -> str:
        """Construct the Backlog consent URL."""
        params = {
            "response_type": "code",
            "client_id": self._settings.client_id,
            "redirect_uri": str(self._settings.redirect_uri),
            "scope": " ".join(self._settings.scopes),
            "state": state,
        }
        return f"{self._settings.authorization_endpoint}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> AuthToken:
        """Exchange an authorization code for an access/refresh token pair."""
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "redirect_uri": str(self._settings.redirect_uri),
        }
        try:
            token_payload = await self._post_token(payload)
        except httpx.HTTPError as exc:
            raise ExchangeFailedError(f"Token endpoint unreachable: {exc}") from exc
        if token_payload is None:
            raise ExchangeFailedError("Authorization code was rejected by Backlog.")

        token = self._to_token(token_payload)
        if token is None or not token.refresh_token:
            raise ExchangeFailedError("Incomplete token payload returned from Backlog.")
        return token

    async def refresh_token(self, refresh_token: str) -> AuthToken:
        """Obtain a new access token using a stored refresh token."""
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
        }
        try:
            token_payload = await self._post_token(payload)
        except httpx.HTTPError as exc:
            raise RefreshFailedError(f"Token endpoint unreachable: {exc}") from exc
        if token_payload is None:
            raise RefreshFailedError("Refresh token was rejected by Backlog.")

        token = self._to_token(token_payload, fallback_refresh_token=refresh_token)
        if token is None:
            raise RefreshFailedError("Incomplete refresh payload returned from Backlog.")
        return token

    async def fetch_profile(self, access_token: str) -> BacklogUser:
        """Load the profile of the user who owns ``access_token``."""
        url = f"{self._settings.space_base_url}/api/v2/users/myself"
        try:
            async with self._client() as client:
                response = await client.get(
                    url, headers={"Authorization": f"Bearer {access_token}"}
                )
        except httpx.HTTPError as exc:
            raise ProfileFetchFailedError(f"Profile request failed: {exc}") from exc

        if response.status_code != httpx.codes.OK:
            raise ProfileFetchFailedError(
                f"Failed to get user info: HTTP {response.status_code}"
            )
        try:
            body = response.json()
            return BacklogUser(
                id=str(int(body["id"])),
                name=body.get("name") or "",
                role_type=int(body.get("roleType") or 0),
                lang=body.get("lang"),
                mail_address=body.get("mailAddress") or "",
            )
        except (ValueError, TypeError, KeyError) as exc:
            raise ProfileFetchFailedError("Malformed profile payload.") from exc

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _post_token(self, payload: Dict[str, str]) -> Dict[str, Any] | None:
        """POST to the token endpoint; ``None`` when the endpoint says no."""
        async with self._client() as client:
            response = await client.post(self._settings.token_endpoint, data=payload)
        if response.status_code != httpx.codes.OK:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    def _to_token(
        self, token_payload: Dict[str, Any], *, fallback_refresh_token: str = ""
    ) -> AuthToken | None:
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        if not access_token or not expires_in:
            return None
        try:
            lifetime = timedelta(seconds=int(expires_in))
        except (TypeError, ValueError):
            return None
        return AuthToken(
            access_token=access_token,
            token_type=token_payload.get("token_type") or "Bearer",
            refresh_token=token_payload.get("refresh_token") or fallback_refresh_token,
            expires_at=self._clock() + lifetime,
        )


__all__ = [
    "BacklogOAuthClient",
    "ExchangeFailedError",
    "OAuthStateEncoder",
    "OAuthStateError",
    "ProfileFetchFailedError",
    "RefreshFailedError",
    "UnknownUserError",
]
