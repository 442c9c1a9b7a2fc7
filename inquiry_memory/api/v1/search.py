"""
Concept Search API Router
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.api.deps import get_similarity_service
from inquiry_memory.core.database import get_db
from inquiry_memory.core.errors import InvalidQueryError
from inquiry_memory.schemas.similarity import ConceptSearchResult
from inquiry_memory.services.similarity import SimilarityService

router = APIRouter()


@router.get("/concept", response_model=list[ConceptSearchResult])
async def search_concept(
    q: str = Query(default="", max_length=4000),
    limit: int | None = Query(default=None, ge=1, le=100),
    project_id: str | None = Query(default=None, alias="projectId"),
    db: AsyncSession = Depends(get_db),
    service: SimilarityService = Depends(get_similarity_service),
) -> list[ConceptSearchResult]:
    """
    Semantic search over session summaries.

    An empty list means either no match or no usable embedding backend;
    the client falls back to keyword search in both cases.
    ``projectId=unassigned`` selects sessions without a project.
    """
    try:
        return await service.search_concept(db, q, limit=limit, project_id=project_id)
    except InvalidQueryError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
