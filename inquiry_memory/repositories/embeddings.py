"""
Embedding Repository (Vector Store)

Persists and retrieves embeddings keyed by ``(source_type, source_id)``.
Vectors are JSON float arrays in a TEXT column; similarity is computed
in Python by the ranker, not in the database.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.models.orm import EmbeddingRecord, SourceType
from inquiry_memory.models.schemas import EmbeddingResult

logger = logging.getLogger(__name__)


class EmbeddingRepository:
    """
    Repository for embedding vectors.

    All methods expect an externally managed ``AsyncSession``.

    Key guarantees:
        - ``store``: upsert as delete-then-insert committed together, so
          readers never observe two embeddings for one key.
        - ``get_all_by_type``: returns every vector of a source type for
          a linear-scan ranking.
    """

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def store(
        self,
        session: AsyncSession,
        source_type: SourceType | str,
        source_id: str,
        embedding: EmbeddingResult,
    ) -> EmbeddingRecord:
        """
        Store an embedding, superseding any existing one for the key.

        Args:
            session: Active async database session.
            source_type: ``session_summary`` or ``document_chunk``.
            source_id: Id of the session or chunk.
            embedding: Gateway output.

        Returns:
            The newly inserted record.
        """
        kind = SourceType(source_type).value
        await session.execute(
            delete(EmbeddingRecord).where(
                EmbeddingRecord.source_type == kind,
                EmbeddingRecord.source_id == source_id,
            )
        )
        record = EmbeddingRecord(
            source_type=kind,
            source_id=source_id,
            vector=embedding.vector,
            dimension=embedding.dimension,
            model=embedding.model,
        )
        session.add(record)
        await session.commit()

        logger.debug(
            "Stored %s embedding for %s (dim=%d, model=%s)",
            kind,
            source_id,
            embedding.dimension,
            embedding.model,
        )
        return record

    async def delete_for_sources(
        self,
        session: AsyncSession,
        source_type: SourceType | str,
        source_ids: Sequence[str],
    ) -> int:
        """Delete embeddings for the given sources. Does not commit."""
        if not source_ids:
            return 0
        result = await session.execute(
            delete(EmbeddingRecord).where(
                EmbeddingRecord.source_type == SourceType(source_type).value,
                EmbeddingRecord.source_id.in_(list(source_ids)),
            )
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get(
        self,
        session: AsyncSession,
        source_type: SourceType | str,
        source_id: str,
    ) -> EmbeddingRecord | None:
        stmt = select(EmbeddingRecord).where(
            EmbeddingRecord.source_type == SourceType(source_type).value,
            EmbeddingRecord.source_id == source_id,
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def get_all_by_type(
        self,
        session: AsyncSession,
        source_type: SourceType | str,
    ) -> Sequence[EmbeddingRecord]:
        stmt = select(EmbeddingRecord).where(
            EmbeddingRecord.source_type == SourceType(source_type).value
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def exists(
        self,
        session: AsyncSession,
        source_type: SourceType | str,
        source_id: str,
        *,
        since: datetime | None = None,
    ) -> bool:
        """
        Check whether an embedding exists for a source.

        Args:
            since: When given, only embeddings created at or after this
                timestamp count.
        """
        stmt = select(EmbeddingRecord.id).where(
            EmbeddingRecord.source_type == SourceType(source_type).value,
            EmbeddingRecord.source_id == source_id,
        )
        if since is not None:
            stmt = stmt.where(EmbeddingRecord.created_at >= since)
        result = await session.execute(stmt.limit(1))
        return result.first() is not None

    async def existing_source_ids(
        self,
        session: AsyncSession,
        source_type: SourceType | str,
        source_ids: Sequence[str],
    ) -> set[str]:
        """Subset of ``source_ids`` that already have an embedding."""
        if not source_ids:
            return set()
        stmt = select(EmbeddingRecord.source_id).where(
            EmbeddingRecord.source_type == SourceType(source_type).value,
            EmbeddingRecord.source_id.in_(list(source_ids)),
        )
        result = await session.execute(stmt)
        return set(result.scalars().all())


# Module-level singleton for convenience imports
embedding_repository = EmbeddingRepository()
