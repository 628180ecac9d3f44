"""
FastAPI dependency utilities for injecting configuration.
"""

from fastapi import Depends

from backlog_bff.core.config import AppSettings

from .clients import get_container
from .container import ServiceContainer


def get_app_settings(container: ServiceContainer = Depends(get_container)) -> AppSettings:
    """FastAPI dependency returning the settings the container was built with."""
    return container.settings


__all__ = ["get_app_settings"]
