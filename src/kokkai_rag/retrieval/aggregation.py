"""Merge per-subquery hits into one ranked, duplicate free list."""
from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from ..core.types import SpeechResult


def merge_results(per_subquery_results: Iterable[Sequence[SpeechResult]], top_k: int) -> List[SpeechResult]:
    """Deduplicate by speech id, rank by score and keep the ``top_k`` best.

    When a speech was found more than once the highest scoring hit is kept;
    on equal scores the first one seen wins. Ties between different speeches
    keep their first-seen order.
    """

    best: Dict[str, SpeechResult] = {}
    first_seen: Dict[str, int] = {}
    for results in per_subquery_results:
        for result in results:
            current = best.get(result.speech_id)
            if current is None:
                first_seen[result.speech_id] = len(first_seen)
                best[result.speech_id] = result
            elif result.score > current.score:
                best[result.speech_id] = result

    ranked = sorted(best.values(), key=lambda result: (-result.score, first_seen[result.speech_id]))
    return ranked[: max(0, top_k)]


__all__ = ["merge_results"]
