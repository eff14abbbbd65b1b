"""Hybrid retrieval question answering over National Diet speeches."""
from __future__ import annotations

from .clients import CompletionOptions, GeminiClient, LLMClientError, OllamaClient
from .config import AppConfig, LLMConfig, RetrievalConfig, StorageConfig, load_config
from .core import DateRange, Entities, QueryPlan, QuestionAnswer, SpeechResult
from .database import SpeechStore, StorageError, create_storage
from .pipeline import PipelineConfigurationError, PipelineEvent, QuestionAnsweringPipeline
from .planning import PlanParseError, QueryPlanner
from .retrieval import CandidateFilter, SimilaritySearchExecutor, StructuredFilter, merge_results
from .runtime import PipelineResources, create_pipeline
from .synthesis import AnswerSynthesizer

__all__ = [
    "AnswerSynthesizer",
    "AppConfig",
    "CandidateFilter",
    "CompletionOptions",
    "DateRange",
    "Entities",
    "GeminiClient",
    "LLMClientError",
    "LLMConfig",
    "OllamaClient",
    "PipelineConfigurationError",
    "PipelineEvent",
    "PipelineResources",
    "PlanParseError",
    "QueryPlan",
    "QueryPlanner",
    "QuestionAnswer",
    "QuestionAnsweringPipeline",
    "RetrievalConfig",
    "SimilaritySearchExecutor",
    "SpeechResult",
    "SpeechStore",
    "StorageConfig",
    "StorageError",
    "StructuredFilter",
    "create_pipeline",
    "create_storage",
    "load_config",
    "merge_results",
]
