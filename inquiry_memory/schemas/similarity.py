"""
Similarity API Schemas

Request/response models for related-session lookups and concept search.
Scores are cosine similarities rounded to two decimals.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from inquiry_memory.schemas.common import CamelModel


class SimilaritySearchRequest(CamelModel):
    """Request body for free-text search over session summaries."""

    query: str = Field(..., max_length=4000, description="Search text")
    exclude_session_id: str | None = Field(
        default=None,
        description="Session to leave out (usually the one being viewed)",
    )
    limit: int | None = Field(default=None, ge=1, le=50)
    threshold: float | None = Field(default=None, ge=-1.0, le=1.0)


class SimilarSession(CamelModel):
    """A session related to a query or to another session."""

    id: str
    type: Literal["session"] = "session"
    score: float = Field(description="Cosine similarity, 2 decimals")
    title: str
    timestamp: datetime | None = Field(
        default=None, description="Last activity (falls back to creation time)"
    )
    preview: str | None = Field(
        default=None, description="Orientation blurb, when metadata exists"
    )
    has_unresolved: bool = False


class SimilarDocument(CamelModel):
    """A document whose best chunk matches a session."""

    id: str = Field(description="Document identifier")
    type: Literal["document"] = "document"
    score: float
    title: str = Field(description="Source name")
    timestamp: datetime | None = None


class SimilaritySearchResponse(CamelModel):
    results: list[SimilarSession] = Field(default_factory=list)


class ConceptSearchResult(CamelModel):
    """One concept search hit."""

    session_id: str
    title: str
    timestamp: datetime | None = None
    score: float
    badge: Literal["Imported", "Native"]
    project_id: str | None = None
