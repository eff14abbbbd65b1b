"""Clients for the completion and embedding backends."""
from __future__ import annotations

from .base import CompletionClient, CompletionOptions, EmbeddingClient, LLMClientError
from .gemini import GeminiClient
from .ollama import OllamaClient

__all__ = [
    "CompletionClient",
    "CompletionOptions",
    "EmbeddingClient",
    "GeminiClient",
    "LLMClientError",
    "OllamaClient",
]
