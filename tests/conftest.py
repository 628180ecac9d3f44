"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import datetime, timezone

import pytest

from backlog_bff.core.config import AppSettings

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def app_settings(monkeypatch: pytest.MonkeyPatch) -> AppSettings:
    """Settings from the bootstrap environment with the analysis model disabled."""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    return AppSettings()  # type: ignore[call-arg]


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW
