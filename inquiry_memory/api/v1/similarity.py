"""
Similarity API Router

Endpoints:
    POST /similarity/search               — sessions related to free text.
    GET  /similarity/sessions/{session_id} — sessions related to a session.
    GET  /similarity/documents/{session_id} — documents related to a session.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.api.deps import get_similarity_service
from inquiry_memory.core.database import get_db
from inquiry_memory.schemas.similarity import (
    SimilarDocument,
    SimilaritySearchRequest,
    SimilaritySearchResponse,
    SimilarSession,
)
from inquiry_memory.services.similarity import SimilarityService

router = APIRouter()


@router.post(
    "/search",
    response_model=SimilaritySearchResponse,
    summary="Find sessions related to a query",
)
async def search_similar(
    request: SimilaritySearchRequest,
    db: AsyncSession = Depends(get_db),
    service: SimilarityService = Depends(get_similarity_service),
) -> SimilaritySearchResponse:
    """
    Rank session summaries against the query text.

    Queries shorter than 10 characters return an empty result, as does
    a query that cannot be embedded.
    """
    results = await service.search_by_query(
        db,
        request.query,
        exclude_session_id=request.exclude_session_id,
        limit=request.limit,
        threshold=request.threshold,
    )
    return SimilaritySearchResponse(results=results)


@router.get("/sessions/{session_id}", response_model=list[SimilarSession])
async def similar_sessions(
    session_id: str,
    limit: int | None = Query(default=None, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    service: SimilarityService = Depends(get_similarity_service),
) -> list[SimilarSession]:
    """Sessions closest to this session's summary (never the session itself)."""
    return await service.find_similar_sessions(db, session_id, limit)


@router.get("/documents/{session_id}", response_model=list[SimilarDocument])
async def similar_documents(
    session_id: str,
    limit: int | None = Query(default=None, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    service: SimilarityService = Depends(get_similarity_service),
) -> list[SimilarDocument]:
    """Documents closest to this session's summary, one entry per document."""
    return await service.find_similar_documents(db, session_id, limit)
