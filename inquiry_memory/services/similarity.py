"""
Similarity Service

Retrieval over stored embeddings: sessions related to a free-text
query, sessions and documents related to a given session, and concept
search for the retrieval panel.

Every lookup is a linear scan of one source type, restricted to
vectors produced by the same model as the query vector. An embedding
failure yields an empty result, so callers can fall back to keyword
search.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.core.config import settings
from inquiry_memory.core.errors import InvalidQueryError
from inquiry_memory.models.orm import EmbeddingRecord, SessionRecord, SourceType
from inquiry_memory.repositories.documents import DocumentRepository, document_repository
from inquiry_memory.repositories.embeddings import (
    EmbeddingRepository,
    embedding_repository,
)
from inquiry_memory.repositories.sessions import SessionRepository, session_repository
from inquiry_memory.schemas.similarity import (
    ConceptSearchResult,
    SimilarDocument,
    SimilarSession,
)
from inquiry_memory.services.embeddings import EmbeddingGateway
from inquiry_memory.services.ranking import (
    ScoredCandidate,
    best_per_group,
    compatible,
    rank,
)

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 10
UNASSIGNED_PROJECT = "unassigned"
# Ids per IN (...) lookup; asyncpg caps a statement at 32767 parameters
FETCH_BATCH_SIZE = 500


def _round(score: float) -> float:
    return round(score, 2)


def _last_seen(record: SessionRecord):
    return record.last_active_at or record.created_at


class SimilarityService:
    """
    Usage::

        service = SimilarityService(gateway)
        hits = await service.search_by_query(db, "how does memory decay work")
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        sessions: SessionRepository = session_repository,
        documents: DocumentRepository = document_repository,
        embeddings: EmbeddingRepository = embedding_repository,
    ) -> None:
        self._gateway = gateway
        self._sessions = sessions
        self._documents = documents
        self._embeddings = embeddings

    # ------------------------------------------------------------------
    # Query → sessions
    # ------------------------------------------------------------------

    async def search_by_query(
        self,
        db: AsyncSession,
        query: str | None,
        exclude_session_id: str | None = None,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[SimilarSession]:
        """
        Sessions whose summary is close to ``query``.

        Queries shorter than 10 characters return nothing without
        calling the embedding backend.
        """
        text = (query or "").strip()
        if len(text) < MIN_QUERY_LENGTH:
            return []
        if limit is None:
            limit = settings.SIMILARITY_DEFAULT_LIMIT
        if threshold is None:
            threshold = settings.SIMILARITY_DEFAULT_THRESHOLD

        query_embedding = await self._gateway.embed(text)
        if query_embedding is None:
            return []

        candidates = await self._session_candidates(
            db, query_embedding.model, query_embedding.dimension
        )
        ranked = rank(
            query_embedding.vector,
            candidates,
            limit=limit,
            threshold=threshold,
            exclude={exclude_session_id} if exclude_session_id else (),
        )

        ids = [candidate.source_id for candidate in ranked]
        records = await self._sessions.get_sessions_by_ids(db, ids)
        metadata = await self._sessions.get_metadata_by_ids(db, ids)

        results: list[SimilarSession] = []
        for candidate in ranked:
            record = records.get(candidate.source_id)
            if record is None:
                continue
            meta = metadata.get(candidate.source_id)
            results.append(
                SimilarSession(
                    id=record.id,
                    score=_round(candidate.score),
                    title=record.title or "Untitled",
                    timestamp=_last_seen(record),
                    preview=(meta.orientation_blurb or None) if meta else None,
                    has_unresolved=bool(meta and meta.unresolved_edge),
                )
            )

        logger.info("Query search returned %d sessions", len(results))
        return results

    # ------------------------------------------------------------------
    # Session → sessions / documents
    # ------------------------------------------------------------------

    async def find_similar_sessions(
        self,
        db: AsyncSession,
        session_id: str,
        limit: int | None = None,
    ) -> list[SimilarSession]:
        """Sessions closest to ``session_id``'s summary. The session itself is never returned."""
        if limit is None:
            limit = settings.SIMILARITY_DEFAULT_LIMIT
        source = await self._embeddings.get(db, SourceType.SESSION_SUMMARY, session_id)
        if source is None:
            return []

        candidates = await self._session_candidates(db, source.model, source.dimension)
        ranked = rank(source.vector, candidates, limit=limit, exclude={session_id})

        records = await self._sessions.get_sessions_by_ids(
            db, [candidate.source_id for candidate in ranked]
        )
        return [
            SimilarSession(
                id=candidate.source_id,
                score=_round(candidate.score),
                title=records[candidate.source_id].title or "Untitled",
                timestamp=_last_seen(records[candidate.source_id]),
            )
            for candidate in ranked
            if candidate.source_id in records
        ]

    async def find_similar_documents(
        self,
        db: AsyncSession,
        session_id: str,
        limit: int | None = None,
    ) -> list[SimilarDocument]:
        """
        Documents closest to ``session_id``'s summary.

        Chunks are ranked individually; each document is represented by
        its best chunk, in rank order.
        """
        source = await self._embeddings.get(db, SourceType.SESSION_SUMMARY, session_id)
        if source is None:
            return []

        candidates = compatible(
            await self._embeddings.get_all_by_type(db, SourceType.DOCUMENT_CHUNK),
            source.model,
            source.dimension,
        )
        if not candidates:
            return []

        if limit is None:
            limit = settings.SIMILARITY_DEFAULT_LIMIT

        ranked = rank(source.vector, candidates)
        seen: set[str] = set()
        results: list[SimilarDocument] = []
        for batch in _batches(ranked):
            chunks = await self._documents.get_chunks_by_ids(
                db, [candidate.source_id for candidate in batch]
            )

            def document_of(candidate, chunks=chunks) -> str | None:
                chunk = chunks.get(candidate.source_id)
                if chunk is None or chunk.document_id in seen:
                    return None
                return chunk.document_id

            for document_id, candidate in best_per_group(batch, document_of):
                chunk = chunks[candidate.source_id]
                seen.add(document_id)
                results.append(
                    SimilarDocument(
                        id=document_id,
                        score=_round(candidate.score),
                        title=chunk.source_name,
                        timestamp=chunk.created_at,
                    )
                )
                if len(results) >= limit:
                    return results
        return results

    # ------------------------------------------------------------------
    # Concept search
    # ------------------------------------------------------------------

    async def search_concept(
        self,
        db: AsyncSession,
        query: str | None,
        limit: int | None = None,
        project_id: str | None = None,
    ) -> list[ConceptSearchResult]:
        """
        Rank every titled session against ``query``.

        ``project_id`` is applied after ranking; ``"unassigned"``
        selects sessions without a project.

        Raises:
            InvalidQueryError: Blank query.
        """
        text = (query or "").strip()
        if not text:
            raise InvalidQueryError("Query must not be empty")

        query_embedding = await self._gateway.embed(text)
        if query_embedding is None:
            logger.error("Concept search: failed to embed query")
            return []

        candidates = await self._session_candidates(
            db, query_embedding.model, query_embedding.dimension
        )
        if limit is None:
            limit = settings.CONCEPT_SEARCH_LIMIT

        ranked = rank(query_embedding.vector, candidates)
        results: list[ConceptSearchResult] = []
        for batch in _batches(ranked):
            records = await self._sessions.get_sessions_by_ids(
                db, [candidate.source_id for candidate in batch]
            )
            for candidate in batch:
                record = records.get(candidate.source_id)
                if record is None or not record.title:
                    continue
                if not _in_project(record, project_id):
                    continue
                results.append(
                    ConceptSearchResult(
                        session_id=record.id,
                        title=record.title,
                        timestamp=_last_seen(record),
                        score=_round(candidate.score),
                        badge="Imported" if record.imported else "Native",
                        project_id=record.project_id,
                    )
                )
                if len(results) >= limit:
                    return results
        return results

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _session_candidates(
        self,
        db: AsyncSession,
        model: str,
        dimension: int,
    ) -> Sequence[EmbeddingRecord]:
        records = await self._embeddings.get_all_by_type(db, SourceType.SESSION_SUMMARY)
        return compatible(records, model, dimension)


def _batches(ranked: list[ScoredCandidate]) -> Iterator[list[ScoredCandidate]]:
    for start in range(0, len(ranked), FETCH_BATCH_SIZE):
        yield ranked[start : start + FETCH_BATCH_SIZE]


def _in_project(record: SessionRecord, project_id: str | None) -> bool:
    if not project_id:
        return True
    if project_id == UNASSIGNED_PROJECT:
        return record.project_id is None
    return record.project_id == project_id
