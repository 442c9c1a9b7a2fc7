"""
Synthesis API Router

Endpoints:
    POST /synthesize        — answer a question from past sessions.
    GET  /synthesize/status — embedding and LLM provider availability.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.api.deps import get_services, get_synthesis_service
from inquiry_memory.core.container import Services
from inquiry_memory.core.database import get_db
from inquiry_memory.core.errors import InvalidQueryError, ProviderUnavailableError
from inquiry_memory.schemas.synthesis import (
    SynthesisRequest,
    SynthesisResponse,
    SynthesisStatus,
)
from inquiry_memory.services.synthesis import SynthesisService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=SynthesisResponse,
    summary="Synthesize an answer across sessions",
    responses={
        400: {"description": "Query missing or shorter than 5 characters"},
        503: {"description": "No LLM provider (or embedding backend) available"},
    },
)
async def synthesize(
    request: SynthesisRequest,
    db: AsyncSession = Depends(get_db),
    service: SynthesisService = Depends(get_synthesis_service),
) -> SynthesisResponse:
    """
    Process:
        1. Select sessions: the given ``sessionIds``, or the sessions
           whose summaries best match the query.
        2. Build a bounded snapshot of each session.
        3. Ask the first available LLM provider for a synthesis.

    When no session qualifies, a fixed answer with no sources is
    returned (200), not an error.
    """
    logger.info("Synthesis request: query='%s'", request.query[:50])
    try:
        return await service.synthesize(
            db,
            request.query,
            session_ids=request.session_ids,
            project_id=request.project_id,
            max_sessions=request.max_sessions,
            threshold=request.threshold,
            provider=request.provider,
        )
    except InvalidQueryError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ProviderUnavailableError as e:
        logger.error("Synthesis failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )


@router.get("/status", response_model=SynthesisStatus)
async def synthesis_status(
    services: Services = Depends(get_services),
) -> SynthesisStatus:
    """Report whether synthesis can currently run."""
    embeddings_available = await services.gateway.is_available()
    providers = await services.chain.available()
    return SynthesisStatus(
        embeddings_available=embeddings_available,
        providers=providers,
        available=bool(providers),
    )
