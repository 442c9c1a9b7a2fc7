"""
Documents API Router

Endpoints:
    POST   /documents               — chunk and index extracted text (202).
    DELETE /documents/{document_id} — remove a document and its vectors.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.api.deps import get_document_service
from inquiry_memory.core.database import get_db
from inquiry_memory.core.errors import DocumentNotFoundError, InvalidInputError
from inquiry_memory.schemas.documents import (
    DocumentIndexRequest,
    DocumentIndexResponse,
)
from inquiry_memory.services.documents import DocumentService

router = APIRouter()


@router.post(
    "",
    response_model=DocumentIndexResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Index document text",
)
async def index_document(
    request: DocumentIndexRequest,
    db: AsyncSession = Depends(get_db),
    service: DocumentService = Depends(get_document_service),
) -> DocumentIndexResponse:
    """
    Chunks are stored before the response is sent; their embeddings are
    computed in the background, so the document shows up in similarity
    results shortly afterwards.
    """
    try:
        indexed = await service.index_text(
            db, request.source_name, request.content, session_id=request.session_id
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return DocumentIndexResponse(
        document_id=indexed.document_id, chunks_count=indexed.chunks_count
    )


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    db: AsyncSession = Depends(get_db),
    service: DocumentService = Depends(get_document_service),
) -> Response:
    try:
        await service.delete_document(db, document_id)
    except DocumentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Document not found"
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
