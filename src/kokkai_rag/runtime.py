"""Application level helpers for assembling pipeline dependencies."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
import logging

from .clients import CompletionOptions, GeminiClient, OllamaClient
from .config import AppConfig, LLMConfig
from .database import SpeechStore, create_storage
from .pipeline import PipelineConfigurationError, QuestionAnsweringPipeline
from .planning import QueryPlanner
from .retrieval import SimilaritySearchExecutor, StructuredFilter
from .synthesis import AnswerSynthesizer

LOGGER = logging.getLogger(__name__)

LLMBackend = Union[OllamaClient, GeminiClient]


@dataclass(slots=True)
class PipelineResources:
    """Container bundling the objects needed to answer questions."""

    pipeline: QuestionAnsweringPipeline
    llm: LLMBackend
    storage: SpeechStore
    owns_llm: bool = True
    owns_storage: bool = True

    def close(self) -> None:
        if self.owns_llm:
            self.llm.close()
        if self.owns_storage:
            self.storage.dispose()


def _client_overrides(config: LLMConfig) -> Dict[str, Any]:
    overrides = {
        "base_url": config.base_url,
        "completion_model": config.completion_model,
        "embedding_model": config.embedding_model,
    }
    return {key: value for key, value in overrides.items() if value}


def create_llm(config: LLMConfig) -> LLMBackend:
    provider = config.provider.strip().lower()
    overrides = _client_overrides(config)
    if provider == "ollama":
        return OllamaClient(timeout=config.timeout, max_retries=config.max_retries, **overrides)
    if provider == "gemini":
        if not config.api_key:
            raise PipelineConfigurationError("The gemini provider requires llm.api_key")
        return GeminiClient(
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=config.max_retries,
            **overrides,
        )
    raise PipelineConfigurationError(f"Unknown LLM provider {config.provider!r}")


def open_storage(config: AppConfig) -> SpeechStore:
    return create_storage(
        config.storage.database_url,
        echo=config.storage.echo_sql,
        pool_size=config.storage.pool_size,
        max_overflow=config.storage.max_overflow,
        pool_timeout=config.storage.pool_timeout,
    )


def create_pipeline(
    config: AppConfig,
    *,
    storage: SpeechStore | None = None,
    llm: Optional[LLMBackend] = None,
) -> PipelineResources:
    owns_llm = llm is None
    owns_storage = storage is None
    backend = llm or create_llm(config.llm)
    try:
        storage_instance = storage or open_storage(config)
    except Exception:
        if owns_llm:
            backend.close()
        raise
    retrieval = config.retrieval
    pipeline = QuestionAnsweringPipeline(
        planner=QueryPlanner(
            backend,
            options=CompletionOptions(
                temperature=retrieval.planning_temperature,
                max_tokens=retrieval.planning_max_tokens,
            ),
        ),
        candidate_filter=StructuredFilter(storage_instance, limit=retrieval.filter_limit),
        executor=SimilaritySearchExecutor(backend, storage_instance),
        synthesizer=AnswerSynthesizer(
            backend,
            options=CompletionOptions(
                temperature=retrieval.answer_temperature,
                max_tokens=retrieval.answer_max_tokens,
            ),
        ),
        max_workers=retrieval.max_workers,
        search_timeout=retrieval.search_timeout,
    )
    LOGGER.info("Kokkai RAG pipeline initialised (provider=%s)", config.llm.provider)
    return PipelineResources(
        pipeline=pipeline,
        llm=backend,
        storage=storage_instance,
        owns_llm=owns_llm,
        owns_storage=owns_storage,
    )


__all__ = ["PipelineResources", "create_llm", "create_pipeline", "open_storage"]
