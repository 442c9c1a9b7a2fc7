"""
Background Enrichment

Embedding work runs after the primary write has committed. It is handed
to an in-process queue and drained by a single worker task, so the
triggering request never awaits it.

Design:
    - New database session per attempt: a previous attempt may have
      left its session in a failed state.
    - Linear backoff between attempts (2s, 4s, 6s...).
    - Final failure is logged with a traceback, never raised.
    - A full queue drops the job with a warning. The metadata refresh
      job and the re-embed script recover dropped work.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inquiry_memory.models.orm import SourceType
from inquiry_memory.repositories.documents import DocumentRepository, document_repository
from inquiry_memory.repositories.embeddings import (
    EmbeddingRepository,
    embedding_repository,
)
from inquiry_memory.repositories.sessions import SessionRepository, session_repository
from inquiry_memory.services.embeddings import EmbeddingGateway

logger = logging.getLogger(__name__)

Job = Callable[[AsyncSession], Awaitable[object]]

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 2.0  # Base delay, multiplied by attempt number


def summary_text(orientation_blurb: str, unresolved_edge: str, last_pivot: str) -> str:
    """Text embedded for a session summary."""
    return " ".join(
        part.strip() for part in (orientation_blurb, unresolved_edge, last_pivot) if part
    ).strip()


class EnrichmentQueue:
    """
    Bounded queue of enrichment jobs with one worker.

    Usage::

        queue = EnrichmentQueue(get_session_factory())
        queue.start()
        queue.submit("embed-doc", lambda db: embed_document_chunks(db, ids, gateway))
        ...
        await queue.stop()  # drains pending jobs first
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        maxsize: int = 1000,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ) -> None:
        self._session_factory = session_factory
        self._queue: asyncio.Queue[tuple[str, Job]] = asyncio.Queue(maxsize=maxsize)
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay
        self._worker: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="enrichment-worker")
        logger.info("Enrichment worker started")

    async def stop(self) -> None:
        """Finish queued jobs, then cancel the worker."""
        if self._worker is None:
            return
        if not self._worker.done():
            await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Enrichment worker stopped")

    async def join(self) -> None:
        """Wait until every submitted job has been processed."""
        await self._queue.join()

    def submit(self, name: str, job: Job) -> bool:
        """
        Enqueue a job without blocking.

        Returns:
            False if the queue is full and the job was dropped.
        """
        try:
            self._queue.put_nowait((name, job))
        except asyncio.QueueFull:
            logger.warning("Enrichment queue full, dropping job '%s'", name)
            return False
        logger.debug("Enrichment job queued: %s", name)
        return True

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        while True:
            name, job = await self._queue.get()
            try:
                await self._execute(name, job)
            except Exception:
                # Session setup or rollback failed outside the job itself
                logger.exception("Enrichment worker error on job '%s'", name)
            finally:
                self._queue.task_done()

    async def _execute(self, name: str, job: Job) -> bool:
        for attempt in range(self._max_retries):
            async with self._session_factory() as session:
                try:
                    await job(session)
                    return True
                except Exception as e:
                    await session.rollback()
                    if attempt < self._max_retries - 1:
                        logger.warning(
                            "Enrichment job '%s' failed (attempt %d/%d): %s",
                            name,
                            attempt + 1,
                            self._max_retries,
                            e,
                        )
                        await asyncio.sleep(self._retry_delay * (attempt + 1))
                        continue

                    logger.exception(
                        "Enrichment job '%s' failed after %d attempts",
                        name,
                        self._max_retries,
                    )
        return False


# ----------------------------------------------------------------------
# Jobs
# ----------------------------------------------------------------------


async def embed_session_summary(
    session: AsyncSession,
    session_id: str,
    gateway: EmbeddingGateway,
    sessions: SessionRepository = session_repository,
    embeddings: EmbeddingRepository = embedding_repository,
) -> bool:
    """
    Embed a session's summary fields and store the vector.

    Skipped when the session has no metadata, or when an embedding at
    least as new as the metadata already exists.

    Returns:
        True if a new embedding was stored.
    """
    metadata = await sessions.get_metadata(session, session_id)
    if metadata is None:
        logger.warning("No metadata for session %s, skipping summary embedding", session_id)
        return False

    if await embeddings.exists(
        session, SourceType.SESSION_SUMMARY, session_id, since=metadata.generated_at
    ):
        logger.debug("Summary embedding for session %s is current", session_id)
        return False

    text = summary_text(
        metadata.orientation_blurb, metadata.unresolved_edge, metadata.last_pivot
    )
    result = await gateway.embed(text)
    if result is None:
        logger.warning("Could not embed summary of session %s", session_id)
        return False

    await embeddings.store(session, SourceType.SESSION_SUMMARY, session_id, result)
    logger.info("Summary embedding stored for session %s", session_id)
    return True


async def embed_document_chunks(
    session: AsyncSession,
    chunk_ids: Sequence[str],
    gateway: EmbeddingGateway,
    documents: DocumentRepository = document_repository,
    embeddings: EmbeddingRepository = embedding_repository,
) -> int:
    """
    Embed every listed chunk that has no embedding yet.

    A chunk whose embedding fails is skipped; the others still go
    through.

    Returns:
        Number of embeddings stored.
    """
    done = await embeddings.existing_source_ids(
        session, SourceType.DOCUMENT_CHUNK, chunk_ids
    )
    chunks = await documents.get_chunks_by_ids(
        session, [cid for cid in chunk_ids if cid not in done]
    )

    stored = 0
    for chunk_id in chunk_ids:
        chunk = chunks.get(chunk_id)
        if chunk is None:
            continue
        result = await gateway.embed(chunk.content)
        if result is None:
            logger.warning("Could not embed chunk %s, continuing", chunk_id)
            continue
        await embeddings.store(session, SourceType.DOCUMENT_CHUNK, chunk_id, result)
        stored += 1

    logger.info("Embedded %d/%d document chunks", stored, len(chunk_ids))
    return stored
