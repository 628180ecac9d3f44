"""
FastAPI application entrypoint for the Backlog activity BFF.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backlog_bff.api.routes import router as api_router
from backlog_bff.core.config import get_settings
from backlog_bff.core.logging import configure_logging
from backlog_bff.dependencies import build_container


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the service container for this application instance."""
    app.state.container = build_container(get_settings())
    yield
    del app.state.container


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Backlog Activity BFF",
        version="0.1.0",
        description="Backlog OAuth, activity feed search and per-user favorites.",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
