"""Metadata narrowing of the speech corpus before similarity search."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple
import logging

from ..core.types import Entities
from ..database.storage import MetadataCriteria, StorageError

LOGGER = logging.getLogger(__name__)

DEFAULT_CANDIDATE_LIMIT = 1000


class CandidateStore(Protocol):
    def find_speech_ids(self, criteria: MetadataCriteria, *, limit: int = DEFAULT_CANDIDATE_LIMIT) -> Sequence[str]:
        ...


@dataclass(frozen=True, slots=True)
class CandidateFilter:
    """Outcome of structured filtering.

    An empty ``speech_ids`` never means "nothing matches" for callers: it
    always means "do not restrict by id". ``applied`` tells whether a metadata
    query was attempted at all and ``error`` keeps an absorbed store failure.
    """

    speech_ids: Tuple[str, ...] = ()
    applied: bool = False
    error: Optional[Exception] = None

    @property
    def restricts(self) -> bool:
        return bool(self.speech_ids)


def build_criteria(entities: Entities) -> MetadataCriteria:
    return MetadataCriteria(
        speakers=entities.speakers,
        parties=entities.parties,
        date_range=entities.date_range,
    )


class StructuredFilter:
    """Resolve extracted entities into a bounded set of candidate speech ids."""

    def __init__(self, store: CandidateStore, *, limit: int = DEFAULT_CANDIDATE_LIMIT) -> None:
        self._store = store
        self._limit = limit

    def filter_candidates(self, entities: Entities) -> CandidateFilter:
        criteria = build_criteria(entities)
        if criteria.is_empty():
            LOGGER.debug("No metadata entities extracted; skipping structured filter")
            return CandidateFilter()
        try:
            speech_ids = tuple(self._store.find_speech_ids(criteria, limit=self._limit))
        except StorageError as exc:
            LOGGER.warning("Structured filter failed, continuing without it: %s", exc)
            return CandidateFilter(applied=True, error=exc)
        LOGGER.info("Structured filter applied: %s candidates", len(speech_ids))
        return CandidateFilter(speech_ids=speech_ids[: self._limit], applied=True)


__all__ = ["CandidateFilter", "CandidateStore", "StructuredFilter", "build_criteria"]
