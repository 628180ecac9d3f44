"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_analysis_service,
    get_container,
    get_favorites_service,
    get_oauth_state_encoder,
    get_token_service,
)
from .config import get_app_settings
from .container import ServiceContainer, build_container

__all__ = [
    "ServiceContainer",
    "build_container",
    "get_analysis_service",
    "get_app_settings",
    "get_container",
    "get_favorites_service",
    "get_oauth_state_encoder",
    "get_token_service",
]
