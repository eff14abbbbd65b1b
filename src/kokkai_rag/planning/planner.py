"""Turn a free-form question into a structured :class:`QueryPlan`.

The planner asks the completion backend for a strict JSON object and then
normalises it field by field. Only output that is not JSON at all is fatal;
fields with an unexpected shape fall back to their defaults so that drift in
the model's output format degrades the plan instead of failing the question.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional, Tuple
import json
import logging
import math
import re

from ..clients import CompletionClient, CompletionOptions
from ..core.types import (
    KNOWN_STRATEGIES,
    STRATEGY_VECTOR,
    DateRange,
    Entities,
    QueryPlan,
)

LOGGER = logging.getLogger(__name__)

MAX_SUBQUERIES = 3
DEFAULT_CONFIDENCE = 0.5
DEFAULT_COMPLEXITY = 2

_PROMPT_TEMPLATE = """You are the query planner of a search system for the minutes of the National Diet (Kokkai).
Analyse the following question.

Question: "{question}"

Answer with a single JSON object in exactly this format (no ```json fences, no extra text):
{{
  "subqueries": [
    "first sub-query that searches the question effectively",
    "second sub-query"
  ],
  "entities": {{
    "speakers": ["concrete member names, e.g. Prime Minister -> Fumio Kishida"],
    "parties": ["party names, if any"],
    "topics": ["main keywords", "related terms and synonyms"],
    "meetings": ["specific committees or sessions, if any"],
    "positions": ["concrete positions or offices, if any"],
    "dateRange": {{"start": "YYYY-MM-DD", "end": "YYYY-MM-DD"}}
  }},
  "enabledStrategies": ["vector", "structured"],
  "confidence": 0.8,
  "estimatedComplexity": 2
}}

Rules:
1. subqueries decompose the question for effective search (1-3 entries)
2. entities only contain information useful for searching Diet minutes
3. enabledStrategies is chosen from ["vector", "structured", "statistical"]
4. confidence is the reliability of this analysis (0-1)
5. estimatedComplexity is the processing complexity (1-5)

Example:
Question "Prime Minister Kishida's remarks on defense spending"
-> speakers: ["Fumio Kishida", "Prime Minister"]
-> topics: ["defense spending", "defense budget", "defense-related expenditure", "national defense costs"]
-> subqueries: ["Prime Minister Kishida defense spending", "Prime Minister defense budget"]"""

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL)


class PlanParseError(RuntimeError):
    """Raised when the planner response is not valid JSON."""

    def __init__(self, message: str, response_text: str) -> None:
        super().__init__(message)
        self.response_text = response_text


def build_plan_prompt(question: str) -> str:
    return _PROMPT_TEMPLATE.format(question=question)


def _strip_code_fence(text: str) -> str:
    match = _FENCE_PATTERN.match(text)
    return match.group(1).strip() if match else text


def _string_tuple(value: Any, *, limit: Optional[int] = None) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return ()
    items = tuple(item.strip() for item in value if isinstance(item, str) and item.strip())
    return items[:limit] if limit is not None else items


def _parse_date(value: Any) -> Optional[date]:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def _parse_date_range(value: Any) -> Optional[DateRange]:
    if not isinstance(value, dict):
        return None
    start = _parse_date(value.get("start"))
    end = _parse_date(value.get("end"))
    if start is None or end is None:
        return None
    return DateRange(start=start, end=end)


def _parse_strategies(value: Any) -> frozenset[str]:
    names = (name.lower() for name in _string_tuple(value))
    strategies = frozenset(name for name in names if name in KNOWN_STRATEGIES)
    return strategies or frozenset({STRATEGY_VECTOR})


def _parse_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        return DEFAULT_CONFIDENCE
    return float(value)


def _parse_complexity(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_COMPLEXITY
    if isinstance(value, float) and not value.is_integer():
        return DEFAULT_COMPLEXITY
    if not 1 <= value <= 5:
        return DEFAULT_COMPLEXITY
    return int(value)


def parse_plan(question: str, data: Any) -> QueryPlan:
    """Normalise decoded planner output into a :class:`QueryPlan`."""

    if not isinstance(data, dict):
        LOGGER.warning("Planner returned %s instead of an object; using defaults", type(data).__name__)
        data = {}
    raw_entities = data.get("entities")
    if not isinstance(raw_entities, dict):
        raw_entities = {}

    entities = Entities(
        speakers=_string_tuple(raw_entities.get("speakers")),
        parties=_string_tuple(raw_entities.get("parties")),
        meetings=_string_tuple(raw_entities.get("meetings")),
        topics=_string_tuple(raw_entities.get("topics")),
        positions=_string_tuple(raw_entities.get("positions")),
        date_range=_parse_date_range(raw_entities.get("dateRange")),
    )
    subqueries = _string_tuple(data.get("subqueries"), limit=MAX_SUBQUERIES) or (question,)
    return QueryPlan(
        original_question=question,
        subqueries=subqueries,
        entities=entities,
        enabled_strategies=_parse_strategies(data.get("enabledStrategies")),
        confidence=_parse_confidence(data.get("confidence")),
        estimated_complexity=_parse_complexity(data.get("estimatedComplexity")),
    )


class QueryPlanner:
    """Produce one query plan per question with a single completion call."""

    def __init__(self, llm: CompletionClient, *, options: Optional[CompletionOptions] = None) -> None:
        self._llm = llm
        self._options = options or CompletionOptions(temperature=0.3, max_tokens=3000)

    def plan(self, question: str) -> QueryPlan:
        LOGGER.info("Planning query strategy")
        plan_text = self._llm.complete(build_plan_prompt(question), options=self._options).strip()
        try:
            data = json.loads(_strip_code_fence(plan_text))
        except json.JSONDecodeError as exc:
            raise PlanParseError(f"Failed to parse planner response as JSON: {exc}", plan_text) from exc

        plan = parse_plan(question, data)
        LOGGER.info(
            "Query plan created: %s subqueries, %s speakers, %s topics, strategies=%s, confidence=%.2f",
            len(plan.subqueries),
            len(plan.entities.speakers),
            len(plan.entities.topics),
            ", ".join(sorted(plan.enabled_strategies)),
            plan.confidence,
        )
        return plan


__all__ = ["PlanParseError", "QueryPlanner", "build_plan_prompt", "parse_plan"]
