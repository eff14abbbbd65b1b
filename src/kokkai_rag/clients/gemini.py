"""Integration with the Gemini API via the official SDK."""
from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any, List, Optional
import logging
import math

import httpx

from .base import CompletionOptions, LLMClientError

if TYPE_CHECKING:  # pragma: no cover - optional dependency for type checkers only
    from google import genai  # noqa: F401 - imported for typing
    from google.genai import types  # noqa: F401 - imported for typing

LOGGER = logging.getLogger(__name__)


class GeminiClient:
    """Completion and embedding client backed by ``google-genai``."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = "https://generativelanguage.googleapis.com",
        completion_model: str = "gemini-2.5-pro",
        embedding_model: str = "gemini-embedding-001",
        timeout: float = 120.0,
        max_retries: int = 3,
    ) -> None:
        if not api_key:
            raise ValueError("A Gemini API key must be provided")
        self._base_url = base_url.rstrip("/")
        self._completion_model = completion_model
        self._embedding_model = embedding_model
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._genai = import_module("google.genai")
        self._types = import_module("google.genai.types")
        self._client = self._genai.Client(api_key=api_key, http_options=self._build_http_options())

    def _build_http_options(self):
        http_options_kwargs: dict[str, object] = {}
        if self._base_url:
            http_options_kwargs["base_url"] = self._base_url
        # the SDK expects milliseconds
        timeout_ms = math.ceil(self._timeout * 1000)
        if timeout_ms > 0:
            http_options_kwargs["timeout"] = timeout_ms
        return self._types.HttpOptions(**http_options_kwargs)

    def complete(self, prompt: str, *, options: CompletionOptions) -> str:
        """Generate text for ``prompt`` with the given sampling ``options``."""

        config = self._types.GenerateContentConfig(
            temperature=options.temperature,
            max_output_tokens=options.max_tokens,
        )
        model = options.model or self._completion_model
        last_exc: Optional[Exception] = None
        for attempt in range(1, self._max_retries + 1):
            try:
                response = self._client.models.generate_content(model=model, contents=prompt, config=config)
                return self._extract_text(response)
            except (self._genai.errors.APIError, httpx.HTTPError) as exc:
                last_exc = exc
                LOGGER.warning("Gemini request failed (attempt %s/%s): %s", attempt, self._max_retries, exc)
        raise LLMClientError("Failed to generate text via Gemini") from last_exc

    def embed(self, text: str) -> List[float]:
        """Return the embedding vector for ``text``."""

        last_exc: Optional[Exception] = None
        for attempt in range(1, self._max_retries + 1):
            try:
                response = self._client.models.embed_content(model=self._embedding_model, contents=text)
            except (self._genai.errors.APIError, httpx.HTTPError) as exc:
                last_exc = exc
                LOGGER.warning("Gemini embedding failed (attempt %s/%s): %s", attempt, self._max_retries, exc)
                continue
            embeddings = response.embeddings or []
            if not embeddings or not embeddings[0].values:
                raise LLMClientError("Gemini response did not contain an embedding")
            return [float(value) for value in embeddings[0].values]
        raise LLMClientError("Failed to embed text via Gemini") from last_exc

    def close(self) -> None:
        """The SDK client holds no resources that need explicit release."""

    @staticmethod
    def _extract_text(response: Any) -> str:
        text = (response.text or "").strip()
        if text:
            return text
        for candidate in response.candidates or ():
            if candidate.content and candidate.content.parts:
                for part in candidate.content.parts:
                    if getattr(part, "text", None):
                        candidate_text = part.text.strip()
                        if candidate_text:
                            return candidate_text
        raise LLMClientError("Gemini response did not contain text")


__all__ = ["GeminiClient"]
