"""Configuration helpers for the Kokkai RAG pipeline."""
from __future__ import annotations

from .settings import (
    AppConfig,
    LLMConfig,
    RetrievalConfig,
    StorageConfig,
    load_config,
    resolve_config_path,
    save_config,
)

__all__ = [
    "AppConfig",
    "LLMConfig",
    "RetrievalConfig",
    "StorageConfig",
    "load_config",
    "resolve_config_path",
    "save_config",
]
