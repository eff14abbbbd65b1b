"""Answer generation from retrieved speeches."""
from __future__ import annotations

from .answer import AnswerSynthesizer, fallback_answer

__all__ = ["AnswerSynthesizer", "fallback_answer"]
