"""Hybrid retrieval: metadata filtering, similarity search and merging."""
from __future__ import annotations

from .aggregation import merge_results
from .search import SearchMode, SimilaritySearchExecutor, select_search_mode
from .structured_filter import CandidateFilter, StructuredFilter

__all__ = [
    "CandidateFilter",
    "SearchMode",
    "SimilaritySearchExecutor",
    "StructuredFilter",
    "merge_results",
    "select_search_mode",
]
