"""
Document Repository

Persistence of document entries and their chunks. Chunks are owned
exclusively by their document and removed with it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.models.orm import DocumentChunkRecord, DocumentRecord

logger = logging.getLogger(__name__)


class DocumentRepository:
    """
    Repository for documents and document chunks.

    Key guarantees:
        - ``save_document_with_chunks``: atomic. Either the document
          AND all chunks are persisted, or nothing is.
    """

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def save_document_with_chunks(
        self,
        session: AsyncSession,
        *,
        document: DocumentRecord,
        chunks: list[DocumentChunkRecord],
    ) -> DocumentRecord:
        """Persist a document and its chunks in one transaction."""
        session.add(document)
        await session.flush()
        session.add_all(chunks)
        await session.commit()

        logger.info(
            "Saved document '%s' with %d chunks",
            document.source_name,
            len(chunks),
        )
        return document

    async def delete_document(
        self,
        session: AsyncSession,
        document_id: str,
    ) -> list[str]:
        """
        Delete a document and its chunks. Does not commit.

        Returns:
            Ids of the deleted chunks, so callers can drop their
            embeddings in the same transaction.
        """
        chunk_ids = await self.get_chunk_ids(session, document_id)
        await session.execute(
            delete(DocumentChunkRecord).where(
                DocumentChunkRecord.document_id == document_id
            )
        )
        await session.execute(
            delete(DocumentRecord).where(DocumentRecord.id == document_id)
        )
        return chunk_ids

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get_document(
        self,
        session: AsyncSession,
        document_id: str,
    ) -> DocumentRecord | None:
        stmt = select(DocumentRecord).where(DocumentRecord.id == document_id)
        result = await session.execute(stmt)
        return result.scalars().first()

    async def get_chunks_by_document(
        self,
        session: AsyncSession,
        document_id: str,
    ) -> Sequence[DocumentChunkRecord]:
        """Get all chunks for a document, ordered by index."""
        stmt = (
            select(DocumentChunkRecord)
            .where(DocumentChunkRecord.document_id == document_id)
            .order_by(DocumentChunkRecord.chunk_index)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_chunk_ids(
        self,
        session: AsyncSession,
        document_id: str,
    ) -> list[str]:
        stmt = select(DocumentChunkRecord.id).where(
            DocumentChunkRecord.document_id == document_id
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def get_chunks_by_ids(
        self,
        session: AsyncSession,
        chunk_ids: Sequence[str],
    ) -> dict[str, DocumentChunkRecord]:
        """Chunks keyed by id; unknown ids are simply absent."""
        if not chunk_ids:
            return {}
        stmt = select(DocumentChunkRecord).where(
            DocumentChunkRecord.id.in_(list(chunk_ids))
        )
        result = await session.execute(stmt)
        return {chunk.id: chunk for chunk in result.scalars().all()}


# Module-level singleton for convenience imports
document_repository = DocumentRepository()
