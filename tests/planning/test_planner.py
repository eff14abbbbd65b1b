from __future__ import annotations

import json
from datetime import date
from typing import List

import pytest

from kokkai_rag.clients import CompletionOptions, LLMClientError
from kokkai_rag.core.types import DateRange
from kokkai_rag.planning import PlanParseError, QueryPlanner, parse_plan

QUESTION = "Did any speaker named Kishida discuss defense spending?"


class DummyLLM:
    def __init__(self, response: str):
        self._response = response
        self.calls: List[tuple[str, CompletionOptions]] = []

    def complete(self, prompt: str, *, options: CompletionOptions) -> str:
        self.calls.append((prompt, options))
        return self._response


class FailingLLM:
    def complete(self, prompt: str, *, options: CompletionOptions) -> str:
        raise LLMClientError("timed out")


def test_plan_maps_all_fields():
    response = json.dumps(
        {
            "subqueries": ["Kishida defense spending", "Prime Minister defense budget"],
            "entities": {
                "speakers": ["Kishida"],
                "parties": ["LDP"],
                "topics": ["defense spending", "defense budget"],
                "meetings": ["Budget Committee"],
                "positions": ["Prime Minister"],
                "dateRange": {"start": "2023-01-01", "end": "2023-12-31"},
            },
            "enabledStrategies": ["vector", "structured"],
            "confidence": 0.8,
            "estimatedComplexity": 3,
        }
    )
    llm = DummyLLM(response)

    plan = QueryPlanner(llm).plan(QUESTION)

    assert plan.original_question == QUESTION
    assert plan.subqueries == ("Kishida defense spending", "Prime Minister defense budget")
    assert plan.entities.speakers == ("Kishida",)
    assert plan.entities.parties == ("LDP",)
    assert plan.entities.meetings == ("Budget Committee",)
    assert plan.entities.positions == ("Prime Minister",)
    assert plan.entities.date_range == DateRange(date(2023, 1, 1), date(2023, 12, 31))
    assert plan.enabled_strategies == frozenset({"vector", "structured"})
    assert plan.confidence == pytest.approx(0.8)
    assert plan.estimated_complexity == 3


def test_plan_issues_one_low_temperature_request_containing_the_question():
    llm = DummyLLM("{}")

    QueryPlanner(llm).plan(QUESTION)

    assert len(llm.calls) == 1
    prompt, options = llm.calls[0]
    assert QUESTION in prompt
    assert "enabledStrategies" in prompt
    assert options.temperature <= 0.3


def test_invalid_json_raises_plan_parse_error():
    with pytest.raises(PlanParseError) as excinfo:
        QueryPlanner(DummyLLM("Sure! Here is the plan: {subqueries: ...")).plan(QUESTION)

    assert "subqueries" in excinfo.value.response_text


def test_empty_response_is_a_parse_error():
    with pytest.raises(PlanParseError):
        QueryPlanner(DummyLLM("   ")).plan(QUESTION)


def test_completion_failure_propagates():
    with pytest.raises(LLMClientError):
        QueryPlanner(FailingLLM()).plan(QUESTION)


def test_markdown_fenced_json_is_accepted():
    response = '```json\n{"subqueries": ["Kishida defense"]}\n```'

    plan = QueryPlanner(DummyLLM(response)).plan(QUESTION)

    assert plan.subqueries == ("Kishida defense",)


def test_missing_fields_fall_back_to_defaults():
    plan = parse_plan(QUESTION, {})

    assert plan.subqueries == (QUESTION,)
    assert plan.entities.speakers == ()
    assert plan.entities.topics == ()
    assert plan.entities.date_range is None
    assert plan.enabled_strategies == frozenset({"vector"})
    assert plan.confidence == pytest.approx(0.5)
    assert plan.estimated_complexity == 2


def test_non_object_json_yields_default_plan():
    plan = parse_plan(QUESTION, ["not", "a", "plan"])

    assert plan.subqueries == (QUESTION,)
    assert plan.enabled_strategies == frozenset({"vector"})


def test_malformed_fields_degrade_individually():
    plan = parse_plan(
        QUESTION,
        {
            "subqueries": ["", "   ", 42, "a", "b", "c", "d"],
            "entities": {
                "speakers": "Kishida",
                "parties": {"name": "LDP"},
                "topics": ["defense", None, ""],
                "dateRange": {"start": "last year", "end": "2024-01-01"},
            },
            "enabledStrategies": ["vector", "telepathy", "STRUCTURED"],
            "confidence": 7,
            "estimatedComplexity": 2.5,
        },
    )

    assert plan.subqueries == ("a", "b", "c")
    assert plan.entities.speakers == ("Kishida",)
    assert plan.entities.parties == ()
    assert plan.entities.topics == ("defense",)
    assert plan.entities.date_range is None
    assert plan.enabled_strategies == frozenset({"vector", "structured"})
    assert plan.confidence == pytest.approx(0.5)
    assert plan.estimated_complexity == 2


def test_subqueries_without_usable_entries_default_to_question():
    plan = parse_plan(QUESTION, {"subqueries": [], "entities": None})

    assert plan.subqueries == (QUESTION,)


def test_boolean_confidence_and_complexity_are_rejected():
    plan = parse_plan(QUESTION, {"confidence": True, "estimatedComplexity": True})

    assert plan.confidence == pytest.approx(0.5)
    assert plan.estimated_complexity == 2


def test_statistical_strategy_is_kept_as_reserved_flag():
    plan = parse_plan(QUESTION, {"enabledStrategies": ["statistical"]})

    assert plan.enabled_strategies == frozenset({"statistical"})
    assert not plan.uses("structured")


def test_inverted_date_range_is_preserved():
    plan = parse_plan(QUESTION, {"entities": {"dateRange": {"start": "2024-12-31", "end": "2024-01-01"}}})

    assert plan.entities.date_range == DateRange(date(2024, 12, 31), date(2024, 1, 1))


def test_query_plan_is_immutable():
    plan = parse_plan(QUESTION, {})

    with pytest.raises(AttributeError):
        plan.subqueries = ("changed",)  # type: ignore[misc]
