"""Database integration components."""
from __future__ import annotations

from .models import Base, SpeechEmbeddingModel, SpeechModel
from .storage import (
    CorpusStats,
    MetadataCriteria,
    SimilarityRow,
    SpeechRecord,
    SpeechStore,
    StorageError,
    create_storage,
)

__all__ = [
    "Base",
    "CorpusStats",
    "MetadataCriteria",
    "SimilarityRow",
    "SpeechEmbeddingModel",
    "SpeechModel",
    "SpeechRecord",
    "SpeechStore",
    "StorageError",
    "create_storage",
]
