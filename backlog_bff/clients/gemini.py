"""Client wrapper for interacting with Google Gemini models."""

from __future__ import annotations

import asyncio
import json
import logging
from textwrap import dedent
from typing import Any, Callable, Iterable

import google.generativeai as genai
from google.api_core.exceptions import GoogleAPICallError, NotFound

from backlog_bff.core.config import GeminiSettings


_TEXT_FALLBACKS: tuple[str, ...] = (
    "gemini-1.5-flash",
    "gemini-1.5-pro",
)

logger = logging.getLogger(__name__)


class GeminiModelError(RuntimeError):
    """Raised when Gemini cannot fulfill a request due to configuration issues."""


class GeminiClient:
    """Ask Gemini for structured summaries of activity feed items."""

    def __init__(self, settings: GeminiSettings) -> None:
        if not settings.api_key:
            raise GeminiModelError("GEMINI_API_KEY is not configured.")
        self._settings = settings
        # Configure the global client once per process.
        genai.configure(api_key=settings.api_key)

    async def analyze_activity(
        self,
        *,
        content: str,
        project_name: str,
        activity_type: str,
        created_user_name: str,
    ) -> dict[str, Any]:
        """Request a summary, key points and next actions for one activity."""

        prompt = dedent(
            (
                "You are an assistant that analyses Backlog project activity. "
                "For the update below, return JSON with keys: summary (string), "
                "keyPoints (array of strings), nextActions (array of strings).\n"
                f"Item: {content}\n"
                f"Project: {project_name}\n"
                f"Type: {activity_type}\n"
                f"Author: {created_user_name}"
            )
        )

        def _invoke() -> str:
            response = self._invoke_with_models(
                models=self._text_model_candidates(),
                env_var="GEMINI_MODEL_NAME",
                error_prefix="Gemini generate_content failed",
                call=lambda model: model.generate_content(prompt),
            )
            return response.text or ""

        raw = await asyncio.to_thread(_invoke)
        return _parse_json_response(raw)

    def _invoke_with_models(
        self,
        *,
        models: Iterable[str],
        env_var: str,
        error_prefix: str,
        call: Callable[[genai.GenerativeModel], Any],
    ) -> Any:
        """Try the configured model followed by fallbacks when available."""

        model_sequence = list(models)
        last_not_found: NotFound | None = None
        for index, model_name in enumerate(model_sequence):
            generative_model = genai.GenerativeModel(model_name)
            try:
                return call(generative_model)
            except NotFound as exc:  # pragma: no cover - network call
                last_not_found = exc
                logger.warning(
                    "Gemini model '%s' not found (attempt %d/%d); trying fallback.",
                    model_name,
                    index + 1,
                    len(model_sequence),
                )
                continue
            except GoogleAPICallError as exc:  # pragma: no cover - network call
                raise GeminiModelError(f"{error_prefix}: {exc.message}") from exc

        if last_not_found is not None:
            primary = model_sequence[0] if model_sequence else "unknown"
            raise GeminiModelError(
                "Gemini model '"
                f"{primary}"
                "' is not available. Update "
                f"{env_var} to a supported value."
            ) from last_not_found

        raise GeminiModelError(f"{error_prefix}: Unknown error invoking Gemini.")

    def _text_model_candidates(self) -> list[str]:
        """Return distinct model names prioritizing the configured value."""
        seen: set[str] = set()
        candidates: list[str] = []
        for name in (self._settings.model_name, *_TEXT_FALLBACKS):
            if not name:
                continue
            cleaned = name.strip()
            if not cleaned or cleaned in seen:
                continue
            seen.add(cleaned)
            candidates.append(cleaned)
        return candidates


def _parse_json_response(payload: str) -> Any:
    payload = payload.strip()
    if payload.startswith("```"):
        payload = payload.strip("`")
        payload = payload.removeprefix("json").strip()
    if not payload:
        return {}
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        return {"raw": payload}


__all__ = ["GeminiClient", "GeminiModelError"]
