"""Models package: SQLAlchemy ORM and value types for the memory subsystem."""

from inquiry_memory.models.base import Base
from inquiry_memory.models.orm import (
    DocumentChunkRecord,
    DocumentRecord,
    EmbeddingRecord,
    MessageRecord,
    SessionMetadataRecord,
    SessionRecord,
    SourceType,
)
from inquiry_memory.models.schemas import (
    EmbeddingResult,
    SessionSnapshot,
    SessionSummary,
    TextChunk,
)

__all__ = [
    # SQLAlchemy ORM (persistence layer)
    "Base",
    "DocumentChunkRecord",
    "DocumentRecord",
    "EmbeddingRecord",
    "MessageRecord",
    "SessionMetadataRecord",
    "SessionRecord",
    "SourceType",
    # Value types
    "EmbeddingResult",
    "SessionSnapshot",
    "SessionSummary",
    "TextChunk",
]
