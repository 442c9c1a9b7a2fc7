"""
Document API Schemas
"""

from __future__ import annotations

from pydantic import Field

from inquiry_memory.schemas.common import CamelModel


class DocumentIndexRequest(CamelModel):
    """Plain text to chunk and index. File parsing happens upstream."""

    source_name: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., description="Extracted document text")
    session_id: str | None = Field(
        default=None, description="Session the document is attached to"
    )


class DocumentIndexResponse(CamelModel):
    """Chunks are stored; their embeddings are computed in the background."""

    document_id: str
    chunks_count: int
