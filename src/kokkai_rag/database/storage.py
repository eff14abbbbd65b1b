"""Persistence helpers built on SQLAlchemy and pgvector."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterator, List, Optional, Sequence
import logging
import math

from sqlalchemy import and_, create_engine, func, or_, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..core.types import DateRange
from .models import Base, SpeechEmbeddingModel, SpeechModel

LOGGER = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when a database operation fails."""


@dataclass(frozen=True, slots=True)
class MetadataCriteria:
    """Metadata predicate: categories are ANDed, patterns within one are ORed."""

    speakers: tuple[str, ...] = ()
    parties: tuple[str, ...] = ()
    date_range: Optional[DateRange] = None

    def is_empty(self) -> bool:
        return not self.speakers and not self.parties and self.date_range is None


@dataclass(frozen=True, slots=True)
class SimilarityRow:
    """Raw similarity hit as returned by the database."""

    speech_id: str
    speaker: str | None
    speaker_group: str | None
    date: date | None
    meeting_name: str | None
    speech_text: str | None
    speech_url: str | None
    similarity_score: Any


@dataclass(slots=True)
class SpeechRecord:
    """A speech together with its embedding, ready to be stored."""

    speech_id: str
    embedding: Sequence[float]
    speaker: str | None = None
    speaker_group: str | None = None
    date: date | None = None
    meeting_name: str | None = None
    speech_text: str | None = None
    speech_url: str | None = None


@dataclass(slots=True)
class CorpusStats:
    """Size of the speech corpus and how much of it is searchable."""

    total_speeches: int
    embedded_speeches: int

    @property
    def embedded_percentage(self) -> float:
        if not self.total_speeches:
            return 0.0
        return self.embedded_speeches / self.total_speeches * 100


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _cosine_distance(left: Sequence[float], right: Sequence[float]) -> float:
    dot = sum(a * b for a, b in zip(left, right))
    left_norm = math.sqrt(sum(a * a for a in left))
    right_norm = math.sqrt(sum(b * b for b in right))
    if not left_norm or not right_norm:
        return 1.0
    return 1.0 - dot / (left_norm * right_norm)


class SpeechStore:
    """Wrapper around SQLAlchemy to filter and rank stored speeches."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(str(exc)) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @property
    def uses_pgvector(self) -> bool:
        return self._engine.dialect.name == "postgresql"

    def ensure_schema(self) -> None:
        try:
            if self.uses_pgvector:
                with self._engine.begin() as connection:
                    connection.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not prepare the database schema: {exc}") from exc

    def upsert_speeches(self, records: Sequence[SpeechRecord]) -> int:
        with self.session() as session:
            for record in records:
                speech = session.get(SpeechModel, record.speech_id)
                if speech is None:
                    speech = SpeechModel(speech_id=record.speech_id)
                    session.add(speech)
                speech.speaker = record.speaker
                speech.speaker_group = record.speaker_group
                speech.date = record.date
                speech.meeting_name = record.meeting_name
                speech.speech_text = record.speech_text
                speech.speech_url = record.speech_url
                vector = [float(value) for value in record.embedding]
                if speech.embedding is None:
                    speech.embedding = SpeechEmbeddingModel(speech_id=record.speech_id, embedding=vector)
                else:
                    speech.embedding.embedding = vector
            session.flush()
            return len(records)

    def find_speech_ids(self, criteria: MetadataCriteria, *, limit: int = 1000) -> List[str]:
        """Return distinct ids of embedded speeches matching ``criteria``."""

        conditions = []
        if criteria.speakers:
            conditions.append(
                or_(*(SpeechModel.speaker.ilike(f"%{_escape_like(name)}%", escape="\\") for name in criteria.speakers))
            )
        if criteria.parties:
            conditions.append(
                or_(
                    *(
                        SpeechModel.speaker_group.ilike(f"%{_escape_like(party)}%", escape="\\")
                        for party in criteria.parties
                    )
                )
            )
        if criteria.date_range is not None:
            conditions.append(SpeechModel.date.between(criteria.date_range.start, criteria.date_range.end))
        if not conditions:
            raise ValueError("Refusing to run an unrestricted metadata query")

        stmt = (
            select(SpeechModel.speech_id)
            .join(SpeechEmbeddingModel, SpeechEmbeddingModel.speech_id == SpeechModel.speech_id)
            .where(and_(*conditions))
            .distinct()
            .limit(limit)
        )
        with self.session() as session:
            return list(session.scalars(stmt))

    def search_similar(
        self,
        embedding: Sequence[float],
        *,
        limit: int,
        max_distance: float,
        speech_ids: Optional[Sequence[str]] = None,
    ) -> List[SimilarityRow]:
        """Return up to ``limit`` speeches closer than ``max_distance``, nearest first."""

        vector = [float(value) for value in embedding]
        if self.uses_pgvector:
            return self._search_pgvector(vector, limit=limit, max_distance=max_distance, speech_ids=speech_ids)
        return self._search_in_python(vector, limit=limit, max_distance=max_distance, speech_ids=speech_ids)

    def _search_pgvector(
        self,
        vector: List[float],
        *,
        limit: int,
        max_distance: float,
        speech_ids: Optional[Sequence[str]],
    ) -> List[SimilarityRow]:
        distance = SpeechEmbeddingModel.embedding.cosine_distance(vector)
        stmt = (
            select(
                SpeechModel.speech_id,
                SpeechModel.speaker,
                SpeechModel.speaker_group,
                SpeechModel.date,
                SpeechModel.meeting_name,
                SpeechModel.speech_text,
                SpeechModel.speech_url,
                (1 - distance).label("similarity_score"),
            )
            .join(SpeechEmbeddingModel, SpeechEmbeddingModel.speech_id == SpeechModel.speech_id)
            .where(distance < max_distance)
        )
        if speech_ids is not None:
            stmt = stmt.where(SpeechModel.speech_id.in_(list(speech_ids)))
        stmt = stmt.order_by(distance).limit(limit)
        with self.session() as session:
            return [SimilarityRow(**row._asdict()) for row in session.execute(stmt)]

    def _search_in_python(
        self,
        vector: List[float],
        *,
        limit: int,
        max_distance: float,
        speech_ids: Optional[Sequence[str]],
    ) -> List[SimilarityRow]:
        stmt = select(SpeechModel, SpeechEmbeddingModel.embedding).join(
            SpeechEmbeddingModel, SpeechEmbeddingModel.speech_id == SpeechModel.speech_id
        )
        if speech_ids is not None:
            stmt = stmt.where(SpeechModel.speech_id.in_(list(speech_ids)))
        scored: list[tuple[float, SpeechModel]] = []
        with self.session() as session:
            for speech, stored in session.execute(stmt):
                distance = _cosine_distance(vector, [float(value) for value in stored])
                if distance < max_distance:
                    scored.append((distance, speech))
        scored.sort(key=lambda item: item[0])
        return [
            SimilarityRow(
                speech_id=speech.speech_id,
                speaker=speech.speaker,
                speaker_group=speech.speaker_group,
                date=speech.date,
                meeting_name=speech.meeting_name,
                speech_text=speech.speech_text,
                speech_url=speech.speech_url,
                similarity_score=1 - distance,
            )
            for distance, speech in scored[:limit]
        ]

    def stats(self) -> CorpusStats:
        with self.session() as session:
            total = session.scalar(select(func.count()).select_from(SpeechModel)) or 0
            embedded = session.scalar(select(func.count()).select_from(SpeechEmbeddingModel)) or 0
        return CorpusStats(total_speeches=total, embedded_speeches=embedded)

    def dispose(self) -> None:
        """Dispose the underlying SQLAlchemy engine and its connection pool."""

        self._engine.dispose()


def create_storage(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 0,
    pool_timeout: float = 30.0,
) -> SpeechStore:
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            future=True,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            future=True,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_pre_ping=True,
        )
    storage = SpeechStore(engine)
    storage.ensure_schema()
    LOGGER.debug("Connected to %s", engine.url.render_as_string(hide_password=True))
    return storage


__all__ = [
    "CorpusStats",
    "MetadataCriteria",
    "SimilarityRow",
    "SpeechRecord",
    "SpeechStore",
    "StorageError",
    "create_storage",
]
