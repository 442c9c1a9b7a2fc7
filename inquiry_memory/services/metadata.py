"""
Session Metadata Service

Generates the derived summary of a session (orientation blurb,
unresolved edge, last pivot) and its title through the LLM provider
chain, stores it, and queues the summary embedding.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.core.errors import SessionLockedError, SessionNotFoundError
from inquiry_memory.models.orm import MessageRecord, SessionMetadataRecord
from inquiry_memory.repositories.sessions import SessionRepository, session_repository
from inquiry_memory.services.embeddings import EmbeddingGateway
from inquiry_memory.services.enrichment import (
    EnrichmentQueue,
    embed_session_summary,
    summary_text,
)
from inquiry_memory.services.llm import ProviderChain

logger = logging.getLogger(__name__)

FALLBACK_TITLE_PREFIX = "Untitled Inquiry"


def format_transcript(messages: Sequence[MessageRecord]) -> str:
    """Render messages as ``ROLE: content`` blocks separated by blank lines."""
    return "\n\n".join(
        f"{message.role.upper()}: {message.content}" for message in messages
    )


class MetadataService:
    """
    Usage::

        service = MetadataService(chain, gateway, queue)
        record = await service.generate_for_session(db, "ses_123")
    """

    def __init__(
        self,
        chain: ProviderChain,
        gateway: EmbeddingGateway,
        queue: EnrichmentQueue | None = None,
        sessions: SessionRepository = session_repository,
    ) -> None:
        self._chain = chain
        self._gateway = gateway
        self._queue = queue
        self._sessions = sessions

    async def generate_for_session(
        self,
        db: AsyncSession,
        session_id: str,
    ) -> SessionMetadataRecord | None:
        """
        Regenerate and store the summary of one session.

        Returns:
            The stored metadata row, or None when the session has no
            messages yet.

        Raises:
            SessionNotFoundError: Unknown session.
            SessionLockedError: Imported sessions are never regenerated.
            ProviderUnavailableError: Every LLM provider failed.
        """
        record = await self._sessions.get_session(db, session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        if record.imported:
            raise SessionLockedError(session_id)

        messages = await self._sessions.get_messages(db, session_id)
        transcript = format_transcript(messages)
        if not transcript:
            logger.info("No content for session %s, skipping metadata generation", session_id)
            return None

        summary = await self._chain.generate_metadata(transcript)
        metadata = await self._sessions.set_metadata(db, session_id, summary)

        self._enqueue_summary_embedding(session_id)
        return metadata

    async def generate_title_for_session(
        self,
        db: AsyncSession,
        session_id: str,
    ) -> str | None:
        """
        Title a session from its first exchange.

        An existing title is kept. Returns None until the session has
        both a user message and a reply.
        """
        record = await self._sessions.get_session(db, session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        if record.title:
            return record.title

        first_exchange = await self._sessions.get_messages(db, session_id, limit=2)
        if len(first_exchange) < 2:
            return None

        title = await self._chain.generate_title(format_transcript(first_exchange))
        if not title:
            title = f"{FALLBACK_TITLE_PREFIX} — {date.today().isoformat()}"

        await self._sessions.set_title(db, session_id, title)
        logger.info("Session %s titled '%s'", session_id, title)
        return title

    @staticmethod
    def summary_text(metadata: SessionMetadataRecord) -> str:
        """Text embedded for a session summary."""
        return summary_text(
            metadata.orientation_blurb, metadata.unresolved_edge, metadata.last_pivot
        )

    def _enqueue_summary_embedding(self, session_id: str) -> None:
        if self._queue is None:
            return
        gateway = self._gateway
        self._queue.submit(
            f"embed-summary:{session_id}",
            lambda db: embed_session_summary(db, session_id, gateway),
        )
