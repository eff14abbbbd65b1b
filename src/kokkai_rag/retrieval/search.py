"""Per-subquery similarity search over the speech embeddings."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import AbstractSet, Any, List, Optional, Protocol, Sequence
import logging
import math

from ..clients import EmbeddingClient
from ..core.types import (
    STRATEGY_STRUCTURED,
    UNKNOWN_DATE,
    UNKNOWN_MEETING,
    UNKNOWN_PARTY,
    UNKNOWN_SPEAKER,
    Entities,
    SpeechResult,
)
from ..database.storage import SimilarityRow

LOGGER = logging.getLogger(__name__)


class SimilarityStore(Protocol):
    def search_similar(
        self,
        embedding: Sequence[float],
        *,
        limit: int,
        max_distance: float,
        speech_ids: Optional[Sequence[str]] = None,
    ) -> Sequence[SimilarityRow]:
        ...


@dataclass(frozen=True, slots=True)
class SearchMode:
    """Retrieval mode together with its cosine distance ceiling."""

    name: str
    max_distance: float
    restricted: bool


# Metadata already narrowed the candidates, so a looser ceiling is fine.
RESTRICTED = SearchMode("restricted", 0.8, True)
# Structured search was wanted but produced no candidates; compensate with a stricter ceiling.
FALLBACK = SearchMode("fallback", 0.6, False)
DEFAULT = SearchMode("default", 0.7, False)


def select_search_mode(strategies: AbstractSet[str], candidate_ids: Optional[Sequence[str]]) -> SearchMode:
    if STRATEGY_STRUCTURED not in strategies:
        return DEFAULT
    if candidate_ids:
        return RESTRICTED
    return FALLBACK


def expand_query(subquery: str, entities: Entities) -> str:
    if not entities.topics:
        return subquery
    return f"{subquery} {' '.join(entities.topics)}"


def normalize_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(score):
        return 0.0
    return min(1.0, max(0.0, score))


def to_speech_result(row: SimilarityRow) -> SpeechResult:
    row_date = row.date
    if isinstance(row_date, date):
        row_date = row_date.isoformat()
    return SpeechResult(
        speech_id=str(row.speech_id),
        speaker=row.speaker or UNKNOWN_SPEAKER,
        party=row.speaker_group or UNKNOWN_PARTY,
        date=row_date or UNKNOWN_DATE,
        meeting=row.meeting_name or UNKNOWN_MEETING,
        content=row.speech_text or "",
        url=row.speech_url or "",
        score=normalize_score(row.similarity_score),
    )


class SimilaritySearchExecutor:
    """Embed one subquery and fetch the closest speeches for it."""

    def __init__(self, embedder: EmbeddingClient, store: SimilarityStore) -> None:
        self._embedder = embedder
        self._store = store

    def search_subquery(
        self,
        subquery: str,
        entities: Entities,
        strategies: AbstractSet[str],
        candidate_ids: Optional[Sequence[str]],
        top_k: int,
    ) -> List[SpeechResult]:
        LOGGER.info("Processing subquery %r", subquery)
        embedding = self._embedder.embed(expand_query(subquery, entities))
        mode = select_search_mode(strategies, candidate_ids)
        rows = self._store.search_similar(
            embedding,
            limit=top_k,
            max_distance=mode.max_distance,
            speech_ids=list(candidate_ids) if mode.restricted else None,
        )
        LOGGER.debug("Subquery %r used %s search and matched %s speeches", subquery, mode.name, len(rows))
        return [to_speech_result(row) for row in rows[:top_k]]


__all__ = [
    "DEFAULT",
    "FALLBACK",
    "RESTRICTED",
    "SearchMode",
    "SimilaritySearchExecutor",
    "SimilarityStore",
    "expand_query",
    "normalize_score",
    "select_search_mode",
    "to_speech_result",
]
