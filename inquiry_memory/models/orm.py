"""
Inquiry Memory Database Models

SQLAlchemy 2.0 ORM models for the semantic memory subsystem.

Tables:
    sessions          — Inquiry conversations (owned by CRUD code, read here).
    messages          — Conversation turns (read here).
    session_metadata  — Derived summary, one row per session, overwritten.
    documents         — Document/context entries whose text gets chunked.
    document_chunks   — Overlapping word windows of a document.
    embeddings        — One vector per (source_type, source_id).
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inquiry_memory.models.base import Base, FloatVector, UTCDateTime, new_id, utcnow


class SourceType(str, enum.Enum):
    """What an embedding was computed from."""

    SESSION_SUMMARY = "session_summary"
    DOCUMENT_CHUNK = "document_chunk"


class SessionRecord(Base):
    """
    An inquiry session.

    Attributes:
        imported: Sessions ingested from external archives. They are
            discoverable but never picked up by the metadata refresh job.
        last_active_at: Bumped by the chat path on every message; the
            staleness watermark is compared against it.
    """

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: new_id("ses")
    )
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    project_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    imported: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )
    last_active_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, index=True
    )

    def __repr__(self) -> str:
        return f"<SessionRecord(id={self.id}, title='{self.title}')>"


class MessageRecord(Base):
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: new_id("msg")
    )
    session_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )


class SessionMetadataRecord(Base):
    """
    Derived summary of a session.

    ``generated_at`` is the staleness watermark: metadata is stale when
    ``generated_at < session.last_active_at``.
    """

    __tablename__ = "session_metadata"

    session_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    orientation_blurb: Mapped[str] = mapped_column(Text, nullable=False, default="")
    unresolved_edge: Mapped[str] = mapped_column(Text, nullable=False, default="")
    last_pivot: Mapped[str] = mapped_column(Text, nullable=False, default="")
    generated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )


class DocumentRecord(Base):
    """A document/context entry attached (optionally) to a session."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: new_id("doc")
    )
    session_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    source_name: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<DocumentRecord(id={self.id}, source='{self.source_name}')>"


class DocumentChunkRecord(Base):
    """
    One word window of a document.

    Owned exclusively by its document: indices are contiguous from 0
    and the rows are deleted together with the document.
    """

    __tablename__ = "document_chunks"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: new_id("chunk")
    )
    document_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)
    source_name: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<DocumentChunkRecord(id={self.id}, "
            f"doc={self.document_id}, idx={self.chunk_index})>"
        )


class EmbeddingRecord(Base):
    """
    Stored embedding vector.

    At most one row per ``(source_type, source_id)``. ``dimension`` and
    ``model`` travel with the vector so rankings can refuse to compare
    vectors from different models.
    """

    __tablename__ = "embeddings"
    __table_args__ = (
        UniqueConstraint("source_type", "source_id", name="uq_embeddings_source"),
    )

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: new_id("emb")
    )
    source_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    source_id: Mapped[str] = mapped_column(String(64), nullable=False)
    vector: Mapped[list[float]] = mapped_column(FloatVector, nullable=False)
    dimension: Mapped[int] = mapped_column(Integer, nullable=False)
    model: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<EmbeddingRecord(type={self.source_type}, "
            f"source={self.source_id}, dim={self.dimension})>"
        )
