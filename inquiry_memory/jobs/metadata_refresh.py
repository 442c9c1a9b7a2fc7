"""
Metadata Staleness Scheduler

Background job that regenerates session metadata once a session has
gone quiet. A session is picked up when its last activity is older
than the inactivity threshold and its metadata is missing or older
than that activity. Imported sessions are never picked up.

Design:
    - One tick runs immediately on start, then one every interval.
    - The next tick is scheduled only after the previous one finished,
      so ticks never overlap.
    - Sessions are processed one at a time, each with its own database
      session. A failure is logged and counted; it never aborts the
      tick or stops the loop.
    - Stopping ends a tick between sessions; the rest wait for the
      next start.
    - A failed session stays stale and is retried on the next tick.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inquiry_memory.repositories.sessions import SessionRepository, session_repository
from inquiry_memory.services.metadata import MetadataService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshReport:
    """Outcome of one scheduler tick."""

    selected: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0


class MetadataRefreshScheduler:
    """
    Usage::

        scheduler = MetadataRefreshScheduler(factory, metadata_service)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        metadata_service: MetadataService,
        inactivity_threshold: timedelta = timedelta(minutes=60),
        interval_seconds: float = 300.0,
        sessions: SessionRepository = session_repository,
    ) -> None:
        self._session_factory = session_factory
        self._metadata = metadata_service
        self._threshold = inactivity_threshold
        self._interval = interval_seconds
        self._sessions = sessions
        self._task: asyncio.Task[None] | None = None
        self._stop = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.warning("Metadata refresh job already running")
            return

        logger.info(
            "Starting metadata refresh job (interval: %.0fs, threshold: %.0fmin)",
            self._interval,
            self._threshold.total_seconds() / 60,
        )
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="metadata-refresh")

    async def stop(self) -> None:
        """Stop the loop. The session being refreshed is allowed to finish."""
        if self._task is None:
            return
        self._stop.set()
        await self._task
        self._task = None
        logger.info("Metadata refresh job stopped")

    async def run_once(self) -> RefreshReport:
        """Run a single refresh tick."""
        async with self._session_factory() as db:
            stale = await self._sessions.get_sessions_needing_metadata(
                db, self._threshold
            )
            session_ids = [record.id for record in stale]

        if not session_ids:
            return RefreshReport()

        logger.info("Found %d sessions needing metadata", len(session_ids))
        succeeded = failed = skipped = 0

        for position, session_id in enumerate(session_ids):
            if self._stop.is_set():
                logger.info(
                    "Stop requested, leaving %d sessions for the next run",
                    len(session_ids) - position,
                )
                break
            async with self._session_factory() as db:
                try:
                    metadata = await self._metadata.generate_for_session(db, session_id)
                except Exception:
                    failed += 1
                    logger.exception("Metadata refresh failed for session %s", session_id)
                    continue

            if metadata is None:
                skipped += 1
            else:
                succeeded += 1
                logger.info("Completed metadata for session %s", session_id)

        report = RefreshReport(
            selected=len(session_ids),
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
        )
        logger.info(
            "Metadata refresh tick: %d selected, %d succeeded, %d failed, %d skipped",
            report.selected,
            report.succeeded,
            report.failed,
            report.skipped,
        )
        return report

    async def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                await self.run_once()
            except Exception:
                logger.exception("Metadata refresh tick failed")

            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except TimeoutError:
                continue
