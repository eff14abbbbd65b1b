"""Contracts shared by the completion and embedding backends."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol


class LLMClientError(RuntimeError):
    """Raised when a completion or embedding request cannot be served."""


@dataclass(frozen=True, slots=True)
class CompletionOptions:
    """Sampling options passed with every completion request."""

    temperature: float = 0.7
    max_tokens: int = 4000
    model: Optional[str] = None


class CompletionClient(Protocol):
    def complete(self, prompt: str, *, options: CompletionOptions) -> str:
        ...


class EmbeddingClient(Protocol):
    def embed(self, text: str) -> List[float]:
        ...


__all__ = ["CompletionClient", "CompletionOptions", "EmbeddingClient", "LLMClientError"]
