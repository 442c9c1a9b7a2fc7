"""
Session Metadata API Router

On-demand counterparts of the background refresh job.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.api.deps import get_metadata_service
from inquiry_memory.core.database import get_db
from inquiry_memory.core.errors import (
    ProviderUnavailableError,
    SessionLockedError,
    SessionNotFoundError,
)
from inquiry_memory.schemas.metadata import SessionMetadataResponse, SessionTitleResponse
from inquiry_memory.services.metadata import MetadataService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/sessions/{session_id}/refresh",
    response_model=SessionMetadataResponse,
    responses={
        404: {"description": "Session not found"},
        409: {"description": "Imported sessions are never regenerated"},
        503: {"description": "No LLM provider available"},
    },
)
async def refresh_metadata(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    service: MetadataService = Depends(get_metadata_service),
) -> SessionMetadataResponse:
    """Regenerate a session's summary now instead of waiting for the job."""
    try:
        metadata = await service.generate_for_session(db, session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    except SessionLockedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ProviderUnavailableError as e:
        logger.error("Metadata refresh for %s failed: %s", session_id, e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )

    if metadata is None:
        return SessionMetadataResponse(session_id=session_id, generated=False)
    return SessionMetadataResponse(
        session_id=session_id,
        generated=True,
        orientation_blurb=metadata.orientation_blurb,
        unresolved_edge=metadata.unresolved_edge,
        last_pivot=metadata.last_pivot,
        generated_at=metadata.generated_at,
    )


@router.post("/sessions/{session_id}/title", response_model=SessionTitleResponse)
async def generate_title(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    service: MetadataService = Depends(get_metadata_service),
) -> SessionTitleResponse:
    """Title the session from its first exchange (an existing title is kept)."""
    try:
        title = await service.generate_title_for_session(db, session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    except ProviderUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )
    return SessionTitleResponse(session_id=session_id, title=title)
