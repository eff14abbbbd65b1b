"""HTTP client for a local Ollama server (completions and embeddings)."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

import httpx

from .base import CompletionOptions, LLMClientError

LOGGER = logging.getLogger(__name__)


class OllamaClient:
    """Minimal client for the Ollama ``generate`` and ``embed`` endpoints."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        *,
        completion_model: str = "gpt-oss:20b",
        embedding_model: str = "bge-m3",
        timeout: float = 120.0,
        max_retries: int = 3,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._completion_model = completion_model
        self._embedding_model = embedding_model
        self._max_retries = max(1, max_retries)
        self._client = httpx.Client(timeout=timeout)

    # --- public API -----------------------------------------------------
    def complete(self, prompt: str, *, options: CompletionOptions) -> str:
        """Run a single non-streaming completion for ``prompt``."""

        payload = {
            "model": options.model or self._completion_model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        data = self._request("/api/generate", payload)
        text = data.get("response")
        if not isinstance(text, str) or not text.strip():
            raise LLMClientError("Ollama response did not contain text")
        return text

    def embed(self, text: str) -> List[float]:
        """Return the embedding vector for ``text``."""

        data = self._request("/api/embed", {"model": self._embedding_model, "input": text})
        embeddings = data.get("embeddings") or []
        if not embeddings or not embeddings[0]:
            raise LLMClientError("Ollama response did not contain an embedding")
        return [float(value) for value in embeddings[0]]

    def close(self) -> None:
        """Close the underlying HTTP client."""

        self._client.close()

    def __enter__(self) -> "OllamaClient":  # pragma: no cover - trivial
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - trivial
        self.close()

    # --- helpers --------------------------------------------------------
    def _request(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        last_exc: Optional[Exception] = None
        for attempt in range(1, self._max_retries + 1):
            try:
                response = self._client.post(url, json=payload)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as exc:
                last_exc = exc
                status = exc.response.status_code
                LOGGER.warning(
                    "Ollama returned status %s for %s (attempt %s/%s)",
                    status,
                    url,
                    attempt,
                    self._max_retries,
                )
                if status == 404:
                    raise LLMClientError(
                        f"Ollama does not know model {payload.get('model')!r}; pull it with `ollama pull`"
                    ) from exc
            except httpx.HTTPError as exc:
                last_exc = exc
                LOGGER.warning(
                    "HTTP error while requesting %s (attempt %s/%s): %s",
                    url,
                    attempt,
                    self._max_retries,
                    exc,
                )
            except ValueError as exc:
                raise LLMClientError(f"Ollama returned invalid JSON for {url}") from exc
        raise LLMClientError(f"Failed to request {url}") from last_exc


__all__ = ["OllamaClient"]
