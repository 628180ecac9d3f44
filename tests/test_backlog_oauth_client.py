try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timedelta
from typing import Any, Callable
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from backlog_bff.clients.backlog_auth import (
    BacklogOAuthClient,
    ExchangeFailedError,
    ProfileFetchFailedError,
    RefreshFailedError,
)
from backlog_bff.core.config import AppSettings


def _client(
    app_settings: AppSettings,
    fixed_now: datetime,
    handler: Callable[[httpx.Request], httpx.Response],
) -> BacklogOAuthClient:
    return BacklogOAuthClient(
        app_settings.backlog,
        transport=httpx.MockTransport(handler),
        clock=lambda: fixed_now,
    )


def _form(request: httpx.Request) -> dict[str, Any]:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def test_build_authorization_url_carries_client_and_state(app_settings: AppSettings) -> None:
    client = BacklogOAuthClient(app_settings.backlog)

    url = client.build_authorization_url("state-123")
    parsed = urlparse(url)
    query = {key: values[0] for key, values in parse_qs(parsed.query).items()}

    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
        "https://example.backlog.com/OAuth2AccessRequest.action"
    )
    assert query == {
        "response_type": "code",
        "client_id": "test-client-id",
        "redirect_uri": str(app_settings.backlog.redirect_uri),
        "scope": "read",
        "state": "state-123",
    }


@pytest.mark.anyio
async def test_exchange_authorization_code_returns_token(
    app_settings: AppSettings, fixed_now: datetime
) -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["form"] = _form(request)
        return httpx.Response(
            200,
            json={
                "access_token": "access-1",
                "token_type": "Bearer",
                "refresh_token": "refresh-1",
                "expires_in": 3600,
            },
        )

    token = await _client(app_settings, fixed_now, handler).exchange_authorization_code("abc")

    assert seen["url"] == "https://example.backlog.com/api/v2/oauth2/token"
    assert seen["form"]["grant_type"] == "authorization_code"
    assert seen["form"]["code"] == "abc"
    assert seen["form"]["client_secret"] == "test-client-secret"
    assert token.access_token == "access-1"
    assert token.refresh_token == "refresh-1"
    assert token.expires_at == fixed_now + timedelta(seconds=3600)
    assert token.user_id == ""


@pytest.mark.anyio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(400, json={"errors": [{"message": "invalid code"}]}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"access_token": "a", "expires_in": 3600}),
    ],
)
async def test_exchange_authorization_code_failures(
    app_settings: AppSettings, fixed_now: datetime, response: httpx.Response
) -> None:
    client = _client(app_settings, fixed_now, lambda request: response)

    with pytest.raises(ExchangeFailedError):
        await client.exchange_authorization_code("bad")


@pytest.mark.anyio
async def test_exchange_wraps_transport_errors(
    app_settings: AppSettings, fixed_now: datetime
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ExchangeFailedError):
        await _client(app_settings, fixed_now, handler).exchange_authorization_code("abc")


@pytest.mark.anyio
async def test_refresh_token_keeps_old_refresh_token_when_not_rotated(
    app_settings: AppSettings, fixed_now: datetime
) -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["form"] = _form(request)
        return httpx.Response(200, json={"access_token": "access-2", "expires_in": 60})

    token = await _client(app_settings, fixed_now, handler).refresh_token("refresh-1")

    assert seen["form"]["grant_type"] == "refresh_token"
    assert seen["form"]["refresh_token"] == "refresh-1"
    assert token.access_token == "access-2"
    assert token.refresh_token == "refresh-1"
    assert token.expires_at == fixed_now + timedelta(seconds=60)


@pytest.mark.anyio
async def test_refresh_token_rejected(app_settings: AppSettings, fixed_now: datetime) -> None:
    client = _client(
        app_settings, fixed_now, lambda request: httpx.Response(401, json={"error": "invalid"})
    )

    with pytest.raises(RefreshFailedError):
        await client.refresh_token("revoked")


@pytest.mark.anyio
async def test_fetch_profile_normalizes_numeric_id(
    app_settings: AppSettings, fixed_now: datetime
) -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(
            200,
            json={
                "id": 42,
                "userId": "taro",
                "name": "Taro Yamada",
                "roleType": 1,
                "lang": "ja",
                "mailAddress": "taro@example.com",
            },
        )

    user = await _client(app_settings, fixed_now, handler).fetch_profile("access-1")

    assert seen["url"] == "https://example.backlog.com/api/v2/users/myself"
    assert seen["auth"] == "Bearer access-1"
    assert user.id == "42"
    assert user.name == "Taro Yamada"
    assert user.mail_address == "taro@example.com"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"errors": []}),
        httpx.Response(200, json={"name": "no id"}),
    ],
)
async def test_fetch_profile_failures(
    app_settings: AppSettings, fixed_now: datetime, response: httpx.Response
) -> None:
    client = _client(app_settings, fixed_now, lambda request: response)

    with pytest.raises(ProfileFetchFailedError):
        await client.fetch_profile("access-1")
