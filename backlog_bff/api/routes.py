"""
FastAPI routes for the Backlog activity BFF.
"""

from __future__ import annotations

import base64
import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Annotated, Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from backlog_bff.clients.backlog_auth import (
    ExchangeFailedError,
    OAuthStateError,
    ProfileFetchFailedError,
    RefreshFailedError,
    UnknownUserError,
)
from backlog_bff.clients.gemini import GeminiModelError
from backlog_bff.dependencies import (
    get_analysis_service,
    get_app_settings,
    get_favorites_service,
    get_oauth_state_encoder,
    get_token_service,
)
from backlog_bff.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    AuthCallbackResponse,
    AuthorizationURLResponse,
    ItemListResponse,
    SuccessResponse,
)
from backlog_bff.services.favorites import AlreadyFavoriteError

router = APIRouter()
logger = logging.getLogger(__name__)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _reauthenticate(exc: Exception) -> HTTPException:
    """Token problems the caller can only fix by signing in again."""
    if isinstance(exc, RefreshFailedError):
        detail = "Backlog session expired and could not be refreshed."
    else:
        detail = "Backlog account not connected."
    return HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail=detail)


def _require(value: str | None, message: str) -> str:
    if not value:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=message)
    return value


def _b64_json(payload: str) -> str:
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(settings: Annotated[Any, Depends(get_app_settings)]) -> dict:
    """Simple health endpoint for load balancer checks."""
    return {
        "status": "ok",
        "env": settings.environment,
        "time": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/auth/url", status_code=HTTPStatus.OK)
async def get_authorization_url(
    request: Request,
    token_service: Annotated[Any, Depends(get_token_service)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Backlog consent screen.",
    ),
) -> Response:
    """Issue a signed state and the Backlog authorization URL carrying it."""
    state = state_encoder.issue()
    url = token_service.authorization_url(state=state)

    if redirect or _wants_html(request):
        return RedirectResponse(url=url, status_code=HTTPStatus.TEMPORARY_REDIRECT)
    return JSONResponse(content=AuthorizationURLResponse(url=url, state=state).model_dump())


@router.get("/auth/callback", status_code=HTTPStatus.OK)
async def handle_oauth_callback(
    request: Request,
    token_service: Annotated[Any, Depends(get_token_service)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: str | None = Query(default=None, description="Authorization code from Backlog."),
    state: str | None = Query(default=None, description="State issued by /auth/url."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect to the front-end instead of returning JSON.",
    ),
) -> Response:
    """Complete the OAuth exchange and hand the session to the front-end."""
    code = _require(code, "authorization code is required")

    if settings.oauth.verify_state:
        state = _require(state, "OAuth state is required")
        try:
            state_encoder.verify(state)
        except OAuthStateError as exc:
            raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    try:
        token, user = await token_service.authorize(code)
    except ExchangeFailedError as exc:
        logger.warning("Authorization code exchange failed: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Failed to exchange authorization code.",
        ) from exc
    except ProfileFetchFailedError as exc:
        logger.warning("Profile lookup after code exchange failed: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Failed to load the Backlog user profile.",
        ) from exc

    frontend = settings.frontend_base_url
    if frontend and (redirect or _wants_html(request)):
        query = urlencode(
            {
                "token": _b64_json(token.model_dump_json(by_alias=True)),
                "user": _b64_json(user.model_dump_json(by_alias=True)),
            }
        )
        target = f"{str(frontend).rstrip('/')}/auth/callback?{query}"
        return RedirectResponse(url=target, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    body = AuthCallbackResponse(token=token, user=user)
    return JSONResponse(content=body.model_dump(mode="json", by_alias=True))


@router.api_route(
    "/auth/logout/{user_id}",
    methods=["GET", "POST"],
    response_model=SuccessResponse,
)
async def logout(
    user_id: str,
    token_service: Annotated[Any, Depends(get_token_service)],
) -> SuccessResponse:
    token_service.logout(user_id)
    return SuccessResponse()


@router.get("/items", response_model=ItemListResponse)
async def search_items(
    favorites: Annotated[Any, Depends(get_favorites_service)],
    user_id: str | None = Query(default=None, alias="userId"),
    keyword: str = Query(default="", description="Case-sensitive substring filter."),
) -> ItemListResponse:
    """Activity feed for the user, optionally filtered, with favorites flagged."""
    user_id = _require(user_id, "user ID is required")
    try:
        items = await favorites.search_items(user_id, keyword)
    except (UnknownUserError, RefreshFailedError) as exc:
        raise _reauthenticate(exc) from exc
    return ItemListResponse(items=items)


@router.get("/favorites/{user_id}", response_model=ItemListResponse)
async def get_favorites(
    user_id: str,
    favorites: Annotated[Any, Depends(get_favorites_service)],
) -> ItemListResponse:
    try:
        items = await favorites.get_favorites(user_id)
    except (UnknownUserError, RefreshFailedError) as exc:
        raise _reauthenticate(exc) from exc
    return ItemListResponse(items=items)


@router.post("/favorites/{user_id}/{item_id}", response_model=SuccessResponse)
async def add_favorite(
    user_id: str,
    item_id: str,
    favorites: Annotated[Any, Depends(get_favorites_service)],
) -> SuccessResponse:
    try:
        await favorites.add_favorite(user_id, item_id)
    except (UnknownUserError, RefreshFailedError) as exc:
        raise _reauthenticate(exc) from exc
    except AlreadyFavoriteError as exc:
        raise HTTPException(status_code=HTTPStatus.CONFLICT, detail=str(exc)) from exc
    return SuccessResponse()


@router.delete("/favorites/{user_id}/{item_id}", response_model=SuccessResponse)
async def remove_favorite(
    user_id: str,
    item_id: str,
    favorites: Annotated[Any, Depends(get_favorites_service)],
) -> SuccessResponse:
    try:
        await favorites.remove_favorite(user_id, item_id)
    except (UnknownUserError, RefreshFailedError) as exc:
        raise _reauthenticate(exc) from exc
    return SuccessResponse()


@router.post("/ai/analyze", response_model=AnalyzeResponse)
async def analyze_item(
    payload: AnalyzeRequest,
    analysis: Annotated[Any, Depends(get_analysis_service)],
) -> AnalyzeResponse:
    """Summarize one activity item with Gemini (sample output when unconfigured)."""
    try:
        result = await analysis.analyze(payload)
    except GeminiModelError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_GATEWAY, detail=str(exc)) from exc
    return AnalyzeResponse(analysis=result)


__all__ = ["router"]
