"""
Document Indexing

Indexes extracted document text for similarity lookups:

    text → TextChunker → document + chunks (one transaction)
         → enrichment queue → chunk embeddings (background)

Text extraction (PDF, HTML, URLs) happens upstream; this service only
receives plain text.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.core.errors import DocumentNotFoundError, InvalidInputError
from inquiry_memory.models.base import new_id
from inquiry_memory.models.orm import DocumentChunkRecord, DocumentRecord, SourceType
from inquiry_memory.repositories.documents import DocumentRepository, document_repository
from inquiry_memory.repositories.embeddings import (
    EmbeddingRepository,
    embedding_repository,
)
from inquiry_memory.services.chunking import TextChunker
from inquiry_memory.services.embeddings import EmbeddingGateway
from inquiry_memory.services.enrichment import EnrichmentQueue, embed_document_chunks

logger = logging.getLogger(__name__)


class IndexedDocument(NamedTuple):
    """Return value of a successful indexing call."""

    document_id: str
    chunks_count: int


class DocumentService:
    """
    Usage::

        service = DocumentService(TextChunker(), gateway, queue)
        async with session_factory() as db:
            indexed = await service.index_text(db, "notes.md", text)
    """

    def __init__(
        self,
        chunker: TextChunker,
        gateway: EmbeddingGateway,
        queue: EnrichmentQueue | None = None,
        documents: DocumentRepository = document_repository,
        embeddings: EmbeddingRepository = embedding_repository,
    ) -> None:
        self._chunker = chunker
        self._gateway = gateway
        self._queue = queue
        self._documents = documents
        self._embeddings = embeddings

    async def index_text(
        self,
        db: AsyncSession,
        source_name: str,
        text: str | None,
        session_id: str | None = None,
    ) -> IndexedDocument:
        """
        Chunk and persist a document, then queue its chunk embeddings.

        The document and its chunks are committed before any embedding
        is attempted; an embedding failure never undoes the write.

        Raises:
            InvalidInputError: The text has no words.
        """
        chunks = self._chunker.split(text)
        if not chunks:
            raise InvalidInputError("Document text is empty")

        document = DocumentRecord(
            id=new_id("doc"), session_id=session_id, source_name=source_name
        )

        chunk_records = [
            DocumentChunkRecord(
                id=new_id("chunk"),
                document_id=document.id,
                chunk_index=chunk.index,
                source_name=source_name,
                content=chunk.text,
            )
            for chunk in chunks
        ]
        await self._documents.save_document_with_chunks(
            db, document=document, chunks=chunk_records
        )
        logger.info(
            "Indexed '%s': %d chunks from %d chars",
            source_name,
            len(chunk_records),
            len(text or ""),
        )

        self._enqueue_chunk_embeddings(document.id, [c.id for c in chunk_records])
        return IndexedDocument(document_id=document.id, chunks_count=len(chunk_records))

    async def delete_document(self, db: AsyncSession, document_id: str) -> int:
        """
        Delete a document with its chunks and their embeddings.

        Returns:
            Number of chunks removed.

        Raises:
            DocumentNotFoundError: Unknown document.
        """
        if await self._documents.get_document(db, document_id) is None:
            raise DocumentNotFoundError(document_id)

        chunk_ids = await self._documents.delete_document(db, document_id)
        await self._embeddings.delete_for_sources(
            db, SourceType.DOCUMENT_CHUNK, chunk_ids
        )
        await db.commit()

        logger.info("Deleted document %s (%d chunks)", document_id, len(chunk_ids))
        return len(chunk_ids)

    def _enqueue_chunk_embeddings(self, document_id: str, chunk_ids: list[str]) -> None:
        if self._queue is None:
            return
        gateway = self._gateway
        self._queue.submit(
            f"embed-document:{document_id}",
            lambda db: embed_document_chunks(db, chunk_ids, gateway),
        )
