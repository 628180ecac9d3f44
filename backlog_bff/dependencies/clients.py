"""
FastAPI dependencies resolving shared services from the application container.
"""

from fastapi import Depends, Request

from backlog_bff.clients import OAuthStateEncoder
from backlog_bff.services import FavoritesService, ItemAnalysisService, TokenLifecycleService

from .container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    """Return the container created during application startup."""
    return request.app.state.container


def get_token_service(
    container: ServiceContainer = Depends(get_container),
) -> TokenLifecycleService:
    return container.token_service


def get_favorites_service(
    container: ServiceContainer = Depends(get_container),
) -> FavoritesService:
    return container.favorites_service


def get_analysis_service(
    container: ServiceContainer = Depends(get_container),
) -> ItemAnalysisService:
    return container.analysis_service


def get_oauth_state_encoder(
    container: ServiceContainer = Depends(get_container),
) -> OAuthStateEncoder:
    return container.state_encoder


__all__ = [
    "get_analysis_service",
    "get_container",
    "get_favorites_service",
    "get_oauth_state_encoder",
    "get_token_service",
]
