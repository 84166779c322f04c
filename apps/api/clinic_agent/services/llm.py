"""Completion gateway built on Gemini."""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Protocol, Sequence

import google.generativeai as genai
from fastapi import Request
from google.api_core import exceptions as google_exceptions

from ..core.config import Settings

logger = logging.getLogger(__name__)


class GatewayError(RuntimeError):
    """Raised when no completion could be produced in time."""


class CompletionGateway(Protocol):
    async def complete(self, prompt: str) -> str:
        """Return completion text or raise GatewayError."""


class GeminiGateway:
    """Single-shot text completion against Gemini with model fallbacks.

    The whole call, fallbacks included, is bounded by ``timeout_seconds`` so a
    slow provider turns into a GatewayError instead of a webhook timeout.
    """

    def __init__(
        self,
        *,
        api_key: str,
        models: Sequence[str],
        timeout_seconds: float,
    ) -> None:
        self._api_key = api_key.strip()
        self._timeout = timeout_seconds
        self._configured = False
        self._model_cache: Dict[str, genai.GenerativeModel] = {}
        self.last_source: str = "unknown"

        self._candidates: list[str] = []
        seen: set[str] = set()
        for candidate in models:
            name = (candidate or "").strip()
            if name and name not in seen:
                self._candidates.append(name)
                seen.add(name)

    @classmethod
    def from_settings(cls, settings: Settings) -> "GeminiGateway":
        return cls(
            api_key=settings.gemini_api_key,
            models=(settings.gemini_model, *settings.gemini_model_fallbacks),
            timeout_seconds=settings.completion_timeout_seconds,
        )

    @property
    def candidates(self) -> tuple[str, ...]:
        return tuple(self._candidates)

    def _get_model(self, name: str) -> genai.GenerativeModel:
        """Return a cached Gemini model instance."""

        if not self._configured:
            genai.configure(api_key=self._api_key)
            self._configured = True
        if name not in self._model_cache:
            self._model_cache[name] = genai.GenerativeModel(name)
        return self._model_cache[name]

    async def complete(self, prompt: str) -> str:
        if not self._api_key:
            raise GatewayError("GEMINI_API_KEY is missing")
        if not self._candidates:
            raise GatewayError("No Gemini models configured")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        last_error: Exception | None = None

        for model_name in self._candidates:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break

            def _run_inference(current_model: str = model_name, budget: float = remaining) -> str:
                response = self._get_model(current_model).generate_content(
                    prompt, request_options={"timeout": budget}
                )
                text = getattr(response, "text", "") or ""
                return text.strip()

            try:
                result = await asyncio.wait_for(loop.run_in_executor(None, _run_inference), timeout=remaining)
            except asyncio.TimeoutError as exc:
                logger.warning("Gemini model %s timed out after %.1fs", model_name, remaining)
                last_error = exc
                break
            except google_exceptions.NotFound as exc:
                logger.warning("Gemini model %s not available: %s", model_name, exc)
                self._model_cache.pop(model_name, None)
                last_error = exc
                continue
            except Exception as exc:  # noqa: BLE001 - any provider failure moves to the next model
                logger.exception("Gemini generate_content failed for %s", model_name)
                last_error = exc
                continue

            if result:
                self.last_source = model_name
                return result
            logger.warning("Gemini model %s returned an empty completion", model_name)
            last_error = GatewayError(f"empty completion from {model_name}")

        self.last_source = "unavailable"
        raise GatewayError("No Gemini model produced a completion in time") from last_error


def get_gateway(request: Request) -> CompletionGateway:
    """FastAPI dependency returning the gateway built at startup."""

    return request.app.state.gateway
