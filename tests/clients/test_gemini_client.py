from types import SimpleNamespace

import httpx
import pytest
from google.genai import errors

from kokkai_rag.clients import CompletionOptions, GeminiClient, LLMClientError
from kokkai_rag.core.types import SpeechResult
from kokkai_rag.synthesis import AnswerSynthesizer, fallback_answer


class StubModels:
    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.calls = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        return self._next()

    def embed_content(self, **kwargs):
        self.calls.append(kwargs)
        return self._next()

    def _next(self):
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_client(outcomes, **kwargs):
    client = GeminiClient(api_key="test-key", **kwargs)
    models = StubModels(outcomes)
    client._client = SimpleNamespace(models=models)
    return client, models


def text_response(text, candidates=None):
    return SimpleNamespace(text=text, candidates=candidates)


def test_complete_passes_model_and_sampling_options():
    client, models = make_client([text_response("  Kishida said so.  ")], completion_model="gemini-demo")

    answer = client.complete("question", options=CompletionOptions(temperature=0.3, max_tokens=3000))

    assert answer == "Kishida said so."
    call = models.calls[0]
    assert call["model"] == "gemini-demo"
    assert call["contents"] == "question"
    assert call["config"].temperature == pytest.approx(0.3)
    assert call["config"].max_output_tokens == 3000


def test_text_is_taken_from_candidate_parts_when_missing():
    part = SimpleNamespace(text="from parts")
    candidate = SimpleNamespace(content=SimpleNamespace(parts=[part]))
    client, _ = make_client([text_response(None, candidates=[candidate])])

    assert client.complete("q", options=CompletionOptions()) == "from parts"


def test_empty_response_is_an_error():
    client, _ = make_client([text_response("", candidates=[])])

    with pytest.raises(LLMClientError):
        client.complete("q", options=CompletionOptions())


def test_transport_timeouts_are_retried_then_wrapped():
    client, models = make_client([httpx.ReadTimeout("timed out")] * 3, max_retries=3)

    with pytest.raises(LLMClientError):
        client.complete("q", options=CompletionOptions())

    assert len(models.calls) == 3


def test_api_errors_are_retried():
    client, models = make_client(
        [errors.APIError(503, {"error": {"message": "busy"}}), text_response("recovered")],
        max_retries=2,
    )

    assert client.complete("q", options=CompletionOptions()) == "recovered"
    assert len(models.calls) == 2


def test_synthesis_falls_back_when_gemini_times_out():
    client, _ = make_client([httpx.ReadTimeout("timed out")] * 2, max_retries=2)
    results = [
        SpeechResult(
            speech_id="S1",
            speaker="Fumio Kishida",
            party="LDP",
            date="2023-02-01",
            meeting="Budget Committee",
            content="We will reinforce our defense capabilities.",
            url="https://kokkai.ndl.go.jp/txt/S1",
            score=0.9,
        )
    ]

    answer = AnswerSynthesizer(client).synthesize("defense?", results)

    assert answer == fallback_answer(results)


def test_embed_returns_first_vector():
    response = SimpleNamespace(embeddings=[SimpleNamespace(values=[1, 0.5])])
    client, models = make_client([response], embedding_model="embed-demo")

    assert client.embed("defense spending") == [1.0, 0.5]
    assert models.calls[0] == {"model": "embed-demo", "contents": "defense spending"}


def test_embed_connection_errors_become_client_errors():
    request = httpx.Request("POST", "https://generativelanguage.googleapis.com")
    client, models = make_client([httpx.ConnectError("refused", request=request)] * 2, max_retries=2)

    with pytest.raises(LLMClientError):
        client.embed("q")

    assert len(models.calls) == 2


def test_missing_embedding_is_not_retried():
    client, models = make_client([SimpleNamespace(embeddings=[])], max_retries=3)

    with pytest.raises(LLMClientError):
        client.embed("q")

    assert len(models.calls) == 1


def test_timeout_is_sent_in_milliseconds():
    client = GeminiClient(api_key="test-key", timeout=1.5)

    assert client._build_http_options().timeout == 1500


def test_api_key_is_required():
    with pytest.raises(ValueError):
        GeminiClient(api_key="")
