from __future__ import annotations

import pytest

import kokkai_rag.cli as cli
import kokkai_rag.config.settings as config_settings
from kokkai_rag.core.types import Entities, QueryPlan, QuestionAnswer, SpeechResult
from kokkai_rag.database import CorpusStats
from kokkai_rag.planning import PlanParseError


class DummyStorage:
    def stats(self) -> CorpusStats:
        return CorpusStats(total_speeches=10, embedded_speeches=8)


class DummyPipeline:
    def __init__(self, outcome=None, error: Exception | None = None):
        self._outcome = outcome
        self._error = error
        self.calls = []

    def answer_question(self, question, *, top_k):
        self.calls.append((question, top_k))
        if self._error is not None:
            raise self._error
        return self._outcome


class DummyResources:
    def __init__(self, pipeline):
        self.pipeline = pipeline
        self.storage = DummyStorage()
        self.closed = False

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_config_locations(tmp_path, monkeypatch):
    monkeypatch.setattr(
        config_settings,
        "_DEFAULT_CONFIG_LOCATIONS",
        (tmp_path / "kokkai_rag.json", tmp_path / "config.json"),
    )


def make_outcome(question: str, results) -> QuestionAnswer:
    plan = QueryPlan(original_question=question, subqueries=(question,), entities=Entities())
    return QuestionAnswer(question=question, plan=plan, results=tuple(results), answer="Kishida said so.")


def install(monkeypatch, pipeline) -> DummyResources:
    resources = DummyResources(pipeline)
    monkeypatch.setattr(cli, "create_pipeline", lambda config: resources)
    return resources


def test_ask_prints_results_and_answer(monkeypatch, capsys):
    result = SpeechResult(
        speech_id="S1",
        speaker="Fumio Kishida",
        party="LDP",
        date="2023-02-01",
        meeting="Budget Committee",
        content="We will reinforce our defense capabilities.",
        url="https://kokkai.ndl.go.jp/txt/S1",
        score=0.87,
    )
    pipeline = DummyPipeline(make_outcome("defense?", [result]))
    resources = install(monkeypatch, pipeline)

    exit_code = cli.main(["ask", "defense?", "--top-k", "3"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert pipeline.calls == [("defense?", 3)]
    assert "Total speeches: 10" in output
    assert "--- Result 1 ---" in output
    assert "Score: 0.870" in output
    assert "Kishida said so." in output
    assert resources.closed


def test_ask_without_hits_reports_no_results(monkeypatch, capsys):
    install(monkeypatch, DummyPipeline(make_outcome("nothing", [])))

    exit_code = cli.main(["ask", "nothing", "--no-stats"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "No relevant speeches found." in output
    assert "Total speeches" not in output


def test_ask_uses_configured_top_k(monkeypatch):
    monkeypatch.setenv("KOKKAI_RETRIEVAL_TOP_K", "7")
    pipeline = DummyPipeline(make_outcome("q", []))
    install(monkeypatch, pipeline)

    cli.main(["ask", "q", "--no-stats"])

    assert pipeline.calls == [("q", 7)]


def test_fatal_question_error_exits_non_zero(monkeypatch):
    resources = install(monkeypatch, DummyPipeline(error=PlanParseError("bad plan", response_text="{")))

    assert cli.main(["ask", "q", "--no-stats"]) == 1
    assert resources.closed


def test_ask_requires_a_question():
    with pytest.raises(SystemExit):
        cli.main(["ask"])


@pytest.mark.parametrize("value", ["0", "-3"])
def test_ask_rejects_non_positive_top_k(monkeypatch, value):
    pipeline = DummyPipeline(make_outcome("q", []))
    install(monkeypatch, pipeline)

    with pytest.raises(SystemExit):
        cli.main(["ask", "q", "--top-k", value])

    assert pipeline.calls == []
