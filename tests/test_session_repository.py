"""
Session Repository Tests

Staleness selection, metadata upsert and message ordering.
"""

from datetime import timedelta

import pytest
from conftest import NOW, seed_session

from inquiry_memory.models.schemas import SessionSummary
from inquiry_memory.repositories.sessions import session_repository

THRESHOLD = timedelta(minutes=60)


async def _stale_ids(db) -> list[str]:
    stale = await session_repository.get_sessions_needing_metadata(db, THRESHOLD, now=NOW)
    return [record.id for record in stale]


# ---------------------------------------------------------------------------
# Staleness selection
# ---------------------------------------------------------------------------


class TestStaleness:
    @pytest.mark.asyncio
    async def test_quiet_session_without_metadata_is_selected(self, db):
        await seed_session(db, "ses_quiet", last_active_at=NOW - timedelta(minutes=61))
        assert await _stale_ids(db) == ["ses_quiet"]

    @pytest.mark.asyncio
    async def test_recently_active_session_is_not_selected(self, db):
        await seed_session(db, "ses_active", last_active_at=NOW - timedelta(minutes=59))
        assert await _stale_ids(db) == []

    @pytest.mark.asyncio
    async def test_metadata_older_than_activity_is_selected(self, db):
        last_active = NOW - timedelta(hours=2)
        await seed_session(db, "ses_old_meta", last_active_at=last_active)
        await session_repository.set_metadata(
            db,
            "ses_old_meta",
            SessionSummary(orientation_blurb="old"),
            generated_at=last_active - timedelta(minutes=10),
        )

        assert await _stale_ids(db) == ["ses_old_meta"]

    @pytest.mark.asyncio
    async def test_fresh_metadata_is_not_selected(self, db):
        last_active = NOW - timedelta(hours=2)
        await seed_session(db, "ses_fresh", last_active_at=last_active)
        await session_repository.set_metadata(
            db,
            "ses_fresh",
            SessionSummary(orientation_blurb="fresh"),
            generated_at=last_active + timedelta(minutes=70),
        )

        assert await _stale_ids(db) == []

    @pytest.mark.asyncio
    async def test_imported_sessions_are_never_selected(self, db):
        await seed_session(
            db, "ses_imported", imported=True, last_active_at=NOW - timedelta(days=3)
        )
        assert await _stale_ids(db) == []

    @pytest.mark.asyncio
    async def test_least_recently_active_first(self, db):
        await seed_session(db, "ses_b", last_active_at=NOW - timedelta(hours=2))
        await seed_session(db, "ses_a", last_active_at=NOW - timedelta(hours=5))
        assert await _stale_ids(db) == ["ses_a", "ses_b"]


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_set_metadata_overwrites(db):
    await seed_session(db, "ses_1")

    await session_repository.set_metadata(
        db, "ses_1", SessionSummary(orientation_blurb="first"), generated_at=NOW
    )
    later = NOW + timedelta(minutes=5)
    await session_repository.set_metadata(
        db,
        "ses_1",
        SessionSummary(orientation_blurb="second", unresolved_edge="open"),
        generated_at=later,
    )

    stored = await session_repository.get_metadata(db, "ses_1")
    assert stored.orientation_blurb == "second"
    assert stored.unresolved_edge == "open"
    assert stored.last_pivot == ""
    assert stored.generated_at == later

    by_id = await session_repository.get_metadata_by_ids(db, ["ses_1", "ses_2"])
    assert list(by_id) == ["ses_1"]


# ---------------------------------------------------------------------------
# Messages and titles
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_messages_are_chronological(db):
    await seed_session(
        db,
        "ses_1",
        messages=[("user", "first"), ("assistant", "second"), ("user", "third")],
    )

    messages = await session_repository.get_messages(db, "ses_1")
    assert [m.content for m in messages] == ["first", "second", "third"]

    opening = await session_repository.get_messages(db, "ses_1", limit=2)
    assert [m.role for m in opening] == ["user", "assistant"]


@pytest.mark.asyncio
async def test_set_title(db):
    await seed_session(db, "ses_1", title=None)

    await session_repository.set_title(db, "ses_1", "Caching Strategies")

    records = await session_repository.get_sessions_by_ids(db, ["ses_1", "nope"])
    assert list(records) == ["ses_1"]
    await db.refresh(records["ses_1"])
    assert records["ses_1"].title == "Caching Strategies"
