"""Core domain entities used across the pipeline."""
from __future__ import annotations

from .types import (
    KNOWN_STRATEGIES,
    STRATEGY_STATISTICAL,
    STRATEGY_STRUCTURED,
    STRATEGY_VECTOR,
    DateRange,
    Entities,
    QueryPlan,
    QuestionAnswer,
    SpeechResult,
)

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
]
