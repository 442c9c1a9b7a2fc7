"""
Memory Subsystem Value Types

Pydantic models for the data flowing between the chunker, the
embedding gateway, the LLM providers and the synthesis pipeline.
None of these are persisted as-is.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class TextChunk(BaseModel):
    """A word window produced by the chunker, before persistence."""

    text: str = Field(min_length=1, description="Chunk text (never empty)")
    index: int = Field(ge=0, description="Position in document (0-based)")


class EmbeddingResult(BaseModel):
    """
    Output of the embedding gateway.

    Attributes:
        vector: Embedding values.
        dimension: ``len(vector)``.
        model: Identifier of the model that produced the vector.
    """

    vector: list[float]
    dimension: int = Field(ge=1)
    model: str


class SessionSummary(BaseModel):
    """The three derived summary fields generated by an LLM provider."""

    orientation_blurb: str = ""
    unresolved_edge: str = ""
    last_pivot: str = ""


class SessionSnapshot(BaseModel):
    """
    Size-bounded view of one session used to build a synthesis prompt.

    ``key_exchanges`` is capped so that prompt size grows with the
    number of sessions, not with transcript length.
    """

    session_id: str
    title: str
    score: float
    orientation: str = ""
    unresolved: str = ""
    key_exchanges: str = ""
    created_at: datetime | None = None
