"""Typed domain objects shared by every stage of the question pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import FrozenSet, Optional, Tuple

STRATEGY_VECTOR = "vector"
STRATEGY_STRUCTURED = "structured"
# Accepted in plans but has no effect on retrieval yet.
STRATEGY_STATISTICAL = "statistical"

KNOWN_STRATEGIES: FrozenSet[str] = frozenset({STRATEGY_VECTOR, STRATEGY_STRUCTURED, STRATEGY_STATISTICAL})

UNKNOWN_SPEAKER = "unknown speaker"
UNKNOWN_PARTY = "?"
UNKNOWN_MEETING = "?"
UNKNOWN_DATE = date.min.isoformat()


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive calendar range extracted from a question."""

    start: date
    end: date


@dataclass(frozen=True, slots=True)
class Entities:
    """Facets of a question that can narrow the speech corpus."""

    speakers: Tuple[str, ...] = ()
    parties: Tuple[str, ...] = ()
    meetings: Tuple[str, ...] = ()
    topics: Tuple[str, ...] = ()
    positions: Tuple[str, ...] = ()
    date_range: Optional[DateRange] = None


@dataclass(frozen=True, slots=True)
class QueryPlan:
    """Structured decomposition of a single question."""

    original_question: str
    subqueries: Tuple[str, ...]
    entities: Entities = field(default_factory=Entities)
    enabled_strategies: FrozenSet[str] = frozenset({STRATEGY_VECTOR})
    confidence: float = 0.5
    estimated_complexity: int = 2

    def __post_init__(self) -> None:
        if not 1 <= len(self.subqueries) <= 3:
            raise ValueError("A query plan needs between one and three subqueries")

    def uses(self, strategy: str) -> bool:
        return strategy in self.enabled_strategies


@dataclass(frozen=True, slots=True)
class SpeechResult:
    """A scored speech returned by similarity search."""

    speech_id: str
    speaker: str
    party: str
    date: str
    meeting: str
    content: str
    url: str
    score: float


@dataclass(frozen=True, slots=True)
class QuestionAnswer:
    """Final outcome of answering one question."""

    question: str
    plan: QueryPlan
    results: Tuple[SpeechResult, ...]
    answer: str

    @property
    def has_results(self) -> bool:
        """``False`` signals that no relevant evidence was found."""

        return bool(self.results)


__all__ = [
    "DateRange",
    "Entities",
    "KNOWN_STRATEGIES",
    "QueryPlan",
    "QuestionAnswer",
    "STRATEGY_STATISTICAL",
    "STRATEGY_STRUCTURED",
    "STRATEGY_VECTOR",
    "SpeechResult",
    "UNKNOWN_DATE",
    "UNKNOWN_MEETING",
    "UNKNOWN_PARTY",
    "UNKNOWN_SPEAKER",
]
