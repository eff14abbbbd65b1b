"""Pipeline orchestration components."""
from __future__ import annotations

from .qa_pipeline import PipelineConfigurationError, PipelineEvent, QuestionAnsweringPipeline

__all__ = ["PipelineConfigurationError", "PipelineEvent", "QuestionAnsweringPipeline"]
