"""
Synthesis API Schemas
"""

from __future__ import annotations

from pydantic import Field

from inquiry_memory.schemas.common import CamelModel


class SynthesisRequest(CamelModel):
    """Request body for cross-session synthesis."""

    query: str = Field(..., max_length=4000, description="Question to answer")
    session_ids: list[str] | None = Field(
        default=None,
        description="Explicit sessions to synthesize from (skips retrieval)",
    )
    project_id: str | None = None
    max_sessions: int | None = Field(default=None, ge=1, le=20)
    threshold: float | None = Field(default=None, ge=-1.0, le=1.0)
    provider: str | None = Field(
        default=None, description="Preferred LLM provider, tried first"
    )


class SynthesisSource(CamelModel):
    """Session cited by a synthesis answer."""

    id: str
    title: str
    score: float = Field(description="Relevance, 2 decimals (1.0 for explicit ids)")
    has_unresolved: bool = False


class SynthesisResponse(CamelModel):
    answer: str
    sources: list[SynthesisSource] = Field(default_factory=list)
    sessions_analyzed: int = 0
    query: str
    provider: str | None = Field(
        default=None, description="Provider that produced the answer"
    )


class SynthesisStatus(CamelModel):
    """Availability of the capabilities synthesis depends on."""

    embeddings_available: bool
    providers: list[str] = Field(
        default_factory=list, description="Configured and reachable LLM providers"
    )
    available: bool
