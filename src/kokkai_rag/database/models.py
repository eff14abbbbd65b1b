"""SQLAlchemy models for transcribed speeches and their embeddings."""
from __future__ import annotations

from datetime import datetime, date
from typing import Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import Date, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Declarative SQLAlchemy base class."""


class SpeechModel(Base):
    """Database representation of a single speech in a Diet session."""

    __tablename__ = "speeches"

    speech_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    speaker: Mapped[Optional[str]] = mapped_column(String(256), nullable=True, index=True)
    speaker_group: Mapped[Optional[str]] = mapped_column(String(256), nullable=True, index=True)
    date: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)
    meeting_name: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    speech_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    speech_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    embedding: Mapped[Optional["SpeechEmbeddingModel"]] = relationship(
        back_populates="speech", cascade="all, delete-orphan"
    )


class SpeechEmbeddingModel(Base):
    """Embedding vector of a speech, searchable by cosine distance."""

    __tablename__ = "speech_embeddings"

    speech_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("speeches.speech_id", ondelete="CASCADE"), primary_key=True
    )
    embedding = mapped_column(Vector(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    speech: Mapped[SpeechModel] = relationship(back_populates="embedding")


__all__ = ["Base", "SpeechEmbeddingModel", "SpeechModel"]
