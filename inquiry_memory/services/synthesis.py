"""
Synthesis Orchestrator

Answers a question by pulling from several past sessions at once:

    query → relevant sessions (explicit ids or semantic ranking)
          → size-bounded snapshot per session
          → synthesis prompt
          → LLM provider chain → answer + cited sources

Each snapshot is capped (first 20 messages, 300 chars per exchange,
2000 chars total), so prompt size scales with the number of sessions
rather than with transcript length.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Final

from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.core.config import settings
from inquiry_memory.core.errors import InvalidQueryError, ProviderUnavailableError
from inquiry_memory.models.orm import MessageRecord, SessionRecord, SourceType
from inquiry_memory.models.schemas import SessionSnapshot
from inquiry_memory.repositories.embeddings import (
    EmbeddingRepository,
    embedding_repository,
)
from inquiry_memory.repositories.sessions import SessionRepository, session_repository
from inquiry_memory.schemas.synthesis import SynthesisResponse, SynthesisSource
from inquiry_memory.services.embeddings import EmbeddingGateway
from inquiry_memory.services.llm import ProviderChain
from inquiry_memory.services.ranking import compatible, rank

logger = logging.getLogger(__name__)

NO_MATCH_ANSWER: Final[str] = (
    "I could not find any relevant sessions to synthesize an answer from."
)
MIN_QUERY_LENGTH: Final[int] = 5

SNAPSHOT_MESSAGE_LIMIT: Final[int] = 20
SNAPSHOT_ASSISTANT_MAX_CHARS: Final[int] = 500
SNAPSHOT_EXCERPT_CHARS: Final[int] = 300
SNAPSHOT_MAX_CHARS: Final[int] = 2000

SYNTHESIS_INSTRUCTIONS: Final[str] = """## Instructions
Based on the sessions above, provide a comprehensive answer that:
1. Directly addresses the user's question
2. Draws on insights from multiple sessions where relevant
3. Notes any contradictions or evolution in thinking across sessions
4. Highlights any unresolved questions that remain open
5. References specific sessions when making claims (e.g., "In your session about X...")

Be concise but thorough. Speak directly to the user about their own thinking."""


def key_exchanges(messages: Sequence[MessageRecord]) -> str:
    """
    Condense the opening of a session into ``Q:``/``A:`` lines.

    User messages are always kept; assistant messages only when shorter
    than 500 characters. Each line carries the first 300 characters and
    the result is capped at 2000 characters.
    """
    lines = [
        f"{'Q' if message.role == 'user' else 'A'}: "
        f"{message.content[:SNAPSHOT_EXCERPT_CHARS]}"
        for message in messages[:SNAPSHOT_MESSAGE_LIMIT]
        if message.role == "user"
        or (
            message.role == "assistant"
            and len(message.content) < SNAPSHOT_ASSISTANT_MAX_CHARS
        )
    ]
    return "\n".join(lines)[:SNAPSHOT_MAX_CHARS]


def build_synthesis_prompt(query: str, snapshots: Sequence[SessionSnapshot]) -> str:
    """Render the question and session snapshots into the synthesis prompt."""
    sections = []
    for position, snapshot in enumerate(snapshots, start=1):
        lines = [
            f'### Session {position}: "{snapshot.title}" '
            f"(Relevance: {round(snapshot.score * 100)}%)"
        ]
        if snapshot.orientation:
            lines.append(f"**Context:** {snapshot.orientation}")
        if snapshot.unresolved:
            lines.append(f"**Open question:** {snapshot.unresolved}")
        lines.append("")
        lines.append("**Key exchanges:**")
        lines.append(snapshot.key_exchanges or "No key points available.")
        sections.append("\n".join(lines))

    return (
        "You are synthesizing knowledge from the user's past thinking sessions "
        "to answer their question.\n\n"
        f"## User's Question\n{query}\n\n"
        "## Relevant Past Sessions\n"
        + "\n\n---\n\n".join(sections)
        + "\n\n"
        + SYNTHESIS_INSTRUCTIONS
    )


class SynthesisService:
    """
    Cross-session question answering.

    Usage::

        service = SynthesisService(gateway, chain)
        result = await service.synthesize(db, "What did I conclude about caching?")
        print(result.answer, [s.title for s in result.sources])
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        chain: ProviderChain,
        sessions: SessionRepository = session_repository,
        embeddings: EmbeddingRepository = embedding_repository,
    ) -> None:
        self._gateway = gateway
        self._chain = chain
        self._sessions = sessions
        self._embeddings = embeddings

    async def synthesize(
        self,
        db: AsyncSession,
        query: str,
        *,
        session_ids: Sequence[str] | None = None,
        project_id: str | None = None,
        max_sessions: int | None = None,
        threshold: float | None = None,
        provider: str | None = None,
    ) -> SynthesisResponse:
        """
        Synthesize an answer to ``query`` from past sessions.

        Args:
            session_ids: Explicit sessions, used in the given order with
                score 1.0. Unknown ids are dropped. Skips retrieval.
            project_id: Drop retrieved sessions from other projects.
            max_sessions: Ranking cap, applied before the project filter.
            threshold: Minimum similarity for retrieved sessions.
            provider: LLM provider to try first.

        Raises:
            InvalidQueryError: Query shorter than 5 characters.
            ProviderUnavailableError: The query could not be embedded,
                or every LLM provider failed.
        """
        text = (query or "").strip()
        if len(text) < MIN_QUERY_LENGTH:
            raise InvalidQueryError(
                f"Query must be at least {MIN_QUERY_LENGTH} characters"
            )

        if session_ids:
            selected = await self._explicit_sessions(db, session_ids)
        else:
            if max_sessions is None:
                max_sessions = settings.SYNTHESIS_MAX_SESSIONS
            if threshold is None:
                threshold = settings.SYNTHESIS_DEFAULT_THRESHOLD
            selected = await self._retrieve_sessions(
                db, text, project_id, max_sessions, threshold
            )

        if not selected:
            logger.info("Synthesis: no relevant sessions for query '%s'", text[:50])
            return SynthesisResponse(
                answer=NO_MATCH_ANSWER, sources=[], sessions_analyzed=0, query=text
            )

        snapshots = await self._snapshots(db, selected)
        prompt = build_synthesis_prompt(text, snapshots)
        answer, used = await self._chain.generate_synthesis(prompt, preferred=provider)

        logger.info(
            "Synthesis answered from %d sessions via %s", len(snapshots), used
        )
        return SynthesisResponse(
            answer=answer,
            sources=[
                SynthesisSource(
                    id=snapshot.session_id,
                    title=snapshot.title,
                    score=round(snapshot.score, 2),
                    has_unresolved=bool(snapshot.unresolved),
                )
                for snapshot in snapshots
            ],
            sessions_analyzed=len(snapshots),
            query=text,
            provider=used,
        )

    # ------------------------------------------------------------------
    # Session selection
    # ------------------------------------------------------------------

    async def _explicit_sessions(
        self,
        db: AsyncSession,
        session_ids: Sequence[str],
    ) -> list[tuple[SessionRecord, float]]:
        records = await self._sessions.get_sessions_by_ids(db, session_ids)
        ordered = dict.fromkeys(session_ids)
        return [(records[sid], 1.0) for sid in ordered if sid in records]

    async def _retrieve_sessions(
        self,
        db: AsyncSession,
        query: str,
        project_id: str | None,
        max_sessions: int,
        threshold: float,
    ) -> list[tuple[SessionRecord, float]]:
        query_embedding = await self._gateway.embed(query)
        if query_embedding is None:
            raise ProviderUnavailableError("Failed to generate embedding for query")

        candidates = compatible(
            await self._embeddings.get_all_by_type(db, SourceType.SESSION_SUMMARY),
            query_embedding.model,
            query_embedding.dimension,
        )
        ranked = rank(
            query_embedding.vector, candidates, limit=max_sessions, threshold=threshold
        )
        records = await self._sessions.get_sessions_by_ids(
            db, [candidate.source_id for candidate in ranked]
        )

        selected: list[tuple[SessionRecord, float]] = []
        for candidate in ranked:
            record = records.get(candidate.source_id)
            if record is None:
                continue
            if project_id and record.project_id != project_id:
                continue
            selected.append((record, candidate.score))
        return selected

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def _snapshots(
        self,
        db: AsyncSession,
        selected: Sequence[tuple[SessionRecord, float]],
    ) -> list[SessionSnapshot]:
        metadata = await self._sessions.get_metadata_by_ids(
            db, [record.id for record, _ in selected]
        )

        snapshots: list[SessionSnapshot] = []
        for record, score in selected:
            messages = await self._sessions.get_messages(
                db, record.id, limit=SNAPSHOT_MESSAGE_LIMIT
            )
            meta = metadata.get(record.id)
            snapshots.append(
                SessionSnapshot(
                    session_id=record.id,
                    title=record.title or "Untitled",
                    score=score,
                    orientation=meta.orientation_blurb if meta else "",
                    unresolved=meta.unresolved_edge if meta else "",
                    key_exchanges=key_exchanges(messages),
                    created_at=record.created_at,
                )
            )
        return snapshots
