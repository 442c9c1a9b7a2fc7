"""
Session Repository

Read access to sessions and messages, plus the two writes this
subsystem owns on them: the derived metadata row and the title.
Session/message CRUD itself lives outside this service.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.models.base import utcnow
from inquiry_memory.models.orm import (
    MessageRecord,
    SessionMetadataRecord,
    SessionRecord,
)
from inquiry_memory.models.schemas import SessionSummary

logger = logging.getLogger(__name__)


class SessionRepository:
    """
    Repository for sessions, messages and session metadata.

    Key guarantees:
        - ``get_sessions_needing_metadata``: selection is a single query,
          so the staleness rule lives in one place.
        - ``set_metadata``: single-statement upsert; metadata is
          overwritten, never versioned.
    """

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def get_session(
        self,
        session: AsyncSession,
        session_id: str,
    ) -> SessionRecord | None:
        stmt = select(SessionRecord).where(SessionRecord.id == session_id)
        result = await session.execute(stmt)
        return result.scalars().first()

    async def get_sessions_by_ids(
        self,
        session: AsyncSession,
        session_ids: Sequence[str],
    ) -> dict[str, SessionRecord]:
        """Sessions keyed by id; unknown ids are simply absent."""
        if not session_ids:
            return {}
        stmt = select(SessionRecord).where(SessionRecord.id.in_(list(session_ids)))
        result = await session.execute(stmt)
        return {record.id: record for record in result.scalars().all()}

    async def get_sessions_needing_metadata(
        self,
        session: AsyncSession,
        threshold: timedelta,
        now: datetime | None = None,
    ) -> Sequence[SessionRecord]:
        """
        Sessions whose derived metadata must be regenerated.

        Criteria:
            - last_active_at older than ``threshold`` (activity went quiet)
            - AND (no metadata row OR metadata.generated_at < last_active_at)
            - AND not an imported session

        Returns:
            Matching sessions, least recently active first.
        """
        cutoff = (now or utcnow()) - threshold
        stmt = (
            select(SessionRecord)
            .outerjoin(
                SessionMetadataRecord,
                SessionMetadataRecord.session_id == SessionRecord.id,
            )
            .where(SessionRecord.last_active_at < cutoff)
            .where(
                (SessionMetadataRecord.session_id.is_(None))
                | (SessionMetadataRecord.generated_at < SessionRecord.last_active_at)
            )
            .where(SessionRecord.imported.is_(False))
            .order_by(SessionRecord.last_active_at)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def set_title(
        self,
        session: AsyncSession,
        session_id: str,
        title: str,
    ) -> None:
        await session.execute(
            update(SessionRecord)
            .where(SessionRecord.id == session_id)
            .values(title=title)
        )
        await session.commit()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def get_messages(
        self,
        session: AsyncSession,
        session_id: str,
        limit: int | None = None,
    ) -> Sequence[MessageRecord]:
        """Messages of a session in chronological order."""
        stmt = (
            select(MessageRecord)
            .where(MessageRecord.session_id == session_id)
            .order_by(MessageRecord.created_at, MessageRecord.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return result.scalars().all()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def get_metadata(
        self,
        session: AsyncSession,
        session_id: str,
    ) -> SessionMetadataRecord | None:
        stmt = select(SessionMetadataRecord).where(
            SessionMetadataRecord.session_id == session_id
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    async def get_metadata_by_ids(
        self,
        session: AsyncSession,
        session_ids: Sequence[str],
    ) -> dict[str, SessionMetadataRecord]:
        if not session_ids:
            return {}
        stmt = select(SessionMetadataRecord).where(
            SessionMetadataRecord.session_id.in_(list(session_ids))
        )
        result = await session.execute(stmt)
        return {record.session_id: record for record in result.scalars().all()}

    async def set_metadata(
        self,
        session: AsyncSession,
        session_id: str,
        summary: SessionSummary,
        generated_at: datetime | None = None,
    ) -> SessionMetadataRecord:
        """
        Insert or overwrite the metadata row of a session.

        Uses the dialect's ``INSERT ... ON CONFLICT DO UPDATE`` so the
        write is one atomic statement.
        """
        values = {
            "session_id": session_id,
            "orientation_blurb": summary.orientation_blurb,
            "unresolved_edge": summary.unresolved_edge,
            "last_pivot": summary.last_pivot,
            "generated_at": generated_at or utcnow(),
        }
        insert = (
            postgresql.insert
            if session.bind.dialect.name == "postgresql"
            else sqlite.insert
        )
        stmt = insert(SessionMetadataRecord).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SessionMetadataRecord.session_id],
            set_={key: value for key, value in values.items() if key != "session_id"},
        )
        await session.execute(stmt)
        await session.commit()

        record = await session.get(
            SessionMetadataRecord, session_id, populate_existing=True
        )
        logger.info("Metadata stored for session %s", session_id)
        return record  # type: ignore[return-value]


# Module-level singleton for convenience imports
session_repository = SessionRepository()
