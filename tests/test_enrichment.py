"""
Background Enrichment Tests

Queue retry/drop behaviour and the two embedding jobs.
"""

import asyncio

import pytest
from conftest import NOW, FakeEmbeddingBackend, seed_session, store_vector

from inquiry_memory.models.orm import DocumentChunkRecord, DocumentRecord, SourceType
from inquiry_memory.models.schemas import SessionSummary
from inquiry_memory.repositories.embeddings import embedding_repository
from inquiry_memory.repositories.sessions import session_repository
from inquiry_memory.services.embeddings import EmbeddingGateway
from inquiry_memory.services.enrichment import (
    EnrichmentQueue,
    embed_document_chunks,
    embed_session_summary,
    summary_text,
)


def test_summary_text_skips_empty_fields():
    assert summary_text(" About caching. ", "", "Moved to TTLs.") == (
        "About caching. Moved to TTLs."
    )
    assert summary_text("", "", "") == ""


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


class TestQueue:
    @pytest.mark.asyncio
    async def test_job_runs_in_background(self, session_factory):
        queue = EnrichmentQueue(session_factory)
        seen = []

        async def job(db):
            seen.append(db)

        queue.start()
        assert queue.submit("job", job) is True
        await queue.join()
        await queue.stop()

        assert len(seen) == 1
        assert not queue.running

    @pytest.mark.asyncio
    async def test_failed_job_is_retried_with_a_fresh_session(self, session_factory):
        queue = EnrichmentQueue(session_factory, max_retries=3, retry_delay=0)
        sessions = []

        async def flaky(db):
            sessions.append(db)
            if len(sessions) < 3:
                raise RuntimeError("transient")

        queue.start()
        queue.submit("flaky", flaky)
        await queue.stop()

        assert len(sessions) == 3
        assert len({id(s) for s in sessions}) == 3

    @pytest.mark.asyncio
    async def test_persistent_failure_does_not_kill_worker(self, session_factory):
        queue = EnrichmentQueue(session_factory, max_retries=2, retry_delay=0)
        attempts = []
        after = []

        async def broken(db):
            attempts.append(1)
            raise RuntimeError("always")

        async def ok(db):
            after.append(1)

        queue.start()
        queue.submit("broken", broken)
        queue.submit("ok", ok)
        await queue.join()

        assert len(attempts) == 2
        assert after == [1]
        assert queue.running
        await queue.stop()

    @pytest.mark.asyncio
    async def test_rollback_error_does_not_kill_worker(self):
        class LostConnectionSession:
            async def __aenter__(self):
                return self

            async def __aexit__(self, *exc_info):
                return False

            async def rollback(self):
                raise ConnectionError("connection lost")

        queue = EnrichmentQueue(LostConnectionSession, max_retries=1, retry_delay=0)
        after = []

        async def broken(db):
            raise RuntimeError("write failed")

        async def ok(db):
            after.append(1)

        queue.start()
        queue.submit("broken", broken)
        queue.submit("ok", ok)
        await asyncio.wait_for(queue.join(), timeout=5)

        assert after == [1]
        assert queue.running
        await asyncio.wait_for(queue.stop(), timeout=5)
        assert not queue.running

    @pytest.mark.asyncio
    async def test_full_queue_drops_job(self, session_factory):
        queue = EnrichmentQueue(session_factory, maxsize=1)

        async def job(db):
            await asyncio.sleep(0)

        assert queue.submit("first", job) is True
        assert queue.submit("second", job) is False
        assert queue.pending == 1


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class TestSummaryEmbedding:
    @pytest.mark.asyncio
    async def test_embeds_summary_text(self, db):
        backend = FakeEmbeddingBackend(default=[0.6, 0.8])
        await seed_session(db, "ses_1")
        await session_repository.set_metadata(
            db,
            "ses_1",
            SessionSummary(orientation_blurb="About caching.", unresolved_edge="TTL?"),
        )

        stored = await embed_session_summary(db, "ses_1", EmbeddingGateway([backend]))

        assert stored is True
        assert backend.calls == ["About caching. TTL?"]
        record = await embedding_repository.get(db, SourceType.SESSION_SUMMARY, "ses_1")
        assert record.vector == [0.6, 0.8]

    @pytest.mark.asyncio
    async def test_skips_without_metadata(self, db, gateway, backend):
        await seed_session(db, "ses_1")

        assert await embed_session_summary(db, "ses_1", gateway) is False
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_skips_when_embedding_is_current(self, db, gateway, backend):
        await seed_session(db, "ses_1")
        await session_repository.set_metadata(
            db, "ses_1", SessionSummary(orientation_blurb="x"), generated_at=NOW
        )
        await store_vector(db, "ses_1", [1.0, 0.0, 0.0])

        assert await embed_session_summary(db, "ses_1", gateway) is False
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_embedding_failure_stores_nothing(self, db):
        await seed_session(db, "ses_1")
        await session_repository.set_metadata(
            db, "ses_1", SessionSummary(orientation_blurb="x")
        )

        gateway = EmbeddingGateway([FakeEmbeddingBackend()])
        assert await embed_session_summary(db, "ses_1", gateway) is False
        assert not await embedding_repository.exists(
            db, SourceType.SESSION_SUMMARY, "ses_1"
        )


@pytest.mark.asyncio
async def test_document_chunks_skip_existing_and_failures(db):
    db.add(DocumentRecord(id="doc_1", source_name="notes.md"))
    await db.flush()
    for i, content in enumerate(["alpha", "beta", "gamma"]):
        db.add(
            DocumentChunkRecord(
                id=f"chunk_{i}",
                document_id="doc_1",
                chunk_index=i,
                source_name="notes.md",
                content=content,
            )
        )
    await db.commit()
    await store_vector(db, "chunk_0", [9.0], source_type=SourceType.DOCUMENT_CHUNK)

    # "beta" has no vector and the backend has no default: it fails
    backend = FakeEmbeddingBackend(vectors={"alpha": [1.0], "gamma": [3.0]})
    stored = await embed_document_chunks(
        db, ["chunk_0", "chunk_1", "chunk_2"], EmbeddingGateway([backend])
    )

    assert stored == 1
    assert backend.calls == ["beta", "gamma"]
    existing = await embedding_repository.existing_source_ids(
        db, SourceType.DOCUMENT_CHUNK, ["chunk_0", "chunk_1", "chunk_2"]
    )
    assert existing == {"chunk_0", "chunk_2"}
