"""Evidence grounded answer generation."""
from __future__ import annotations

from typing import Optional, Sequence
import logging

from ..clients import CompletionClient, CompletionOptions, LLMClientError
from ..core.types import SpeechResult

LOGGER = logging.getLogger(__name__)

CONTENT_PREVIEW_CHARS = 300

_PROMPT_TEMPLATE = """Using the following minutes of the National Diet, write an accurate and detailed answer to the question.

Question: {question}

Diet minutes:
{context}

Requirements:
1. State the speaker's name and party.
2. Include the date of the remark and the name of the meeting.
3. Quote the concrete content of the remark.
4. Give the source URL.
5. When comparing or organising several remarks, give the source URL for every point.
6. The summary must also include the source URLs of the remarks it relies on.
7. Answer only from the facts above and avoid speculation.

Important: every item of a comparison, organisation or summary must cite the source URL of the remark it is based on (e.g. https://kokkai.ndl.go.jp/txt/...).

Answer:"""


def format_evidence(results: Sequence[SpeechResult]) -> str:
    blocks = []
    for index, result in enumerate(results, start=1):
        blocks.append(
            f"[Speech {index}]\n"
            f"Speaker: {result.speaker} ({result.party})\n"
            f"Date: {result.date}\n"
            f"Meeting: {result.meeting}\n"
            f"Content: {result.content}\n"
            f"Source: {result.url}\n"
            f"Relevance: {result.score:.3f}\n"
        )
    return "\n".join(blocks)


def build_answer_prompt(question: str, results: Sequence[SpeechResult]) -> str:
    return _PROMPT_TEMPLATE.format(question=question, context=format_evidence(results))


def truncate(text: str, limit: int = CONTENT_PREVIEW_CHARS) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def fallback_answer(results: Sequence[SpeechResult]) -> str:
    """Deterministic answer listing the evidence without a language model."""

    entries = [
        f"{index}. {result.speaker} ({result.party})\n"
        f"   Date: {result.date}\n"
        f"   Meeting: {result.meeting}\n"
        f"   Content: {truncate(result.content)}\n"
        f"   Source: {result.url}\n"
        f"   Relevance: {result.score:.3f}"
        for index, result in enumerate(results, start=1)
    ]
    return "Information based on the search results:\n\n" + "\n\n".join(entries)


class AnswerSynthesizer:
    """Ask the completion backend for an answer that cites its evidence."""

    def __init__(self, llm: CompletionClient, *, options: Optional[CompletionOptions] = None) -> None:
        self._llm = llm
        self._options = options or CompletionOptions()

    def synthesize(self, question: str, results: Sequence[SpeechResult]) -> str:
        prompt = build_answer_prompt(question, results)
        try:
            return self._llm.complete(prompt, options=self._options)
        except LLMClientError as exc:
            LOGGER.warning("Answer generation failed, falling back to a result listing: %s", exc)
            return fallback_answer(results)


__all__ = ["AnswerSynthesizer", "build_answer_prompt", "fallback_answer", "format_evidence", "truncate"]
