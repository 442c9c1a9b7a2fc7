#!/usr/bin/env python3
"""
Re-embed Script

Recomputes stored embeddings with the currently configured embedding
backend. Run it after switching EMBEDDING_BACKEND or an embedding
model: rankings only compare vectors produced by the same model, so
until this runs, items embedded by the previous model are invisible
to similarity lookups.

Usage:
    $ python scripts/reembed.py                     # everything
    $ python scripts/reembed.py --type session_summary
    $ python scripts/reembed.py --mismatched-only   # skip vectors already current
    $ python scripts/reembed.py --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from inquiry_memory.core.config import settings
from inquiry_memory.core.database import dispose_engine, get_session_factory
from inquiry_memory.core.logging import setup_logging
from inquiry_memory.models.orm import (
    DocumentChunkRecord,
    EmbeddingRecord,
    SessionMetadataRecord,
    SourceType,
)
from inquiry_memory.repositories.embeddings import embedding_repository
from inquiry_memory.services.embeddings import EmbeddingGateway
from inquiry_memory.services.enrichment import summary_text


async def _current_models(db: AsyncSession, source_type: SourceType) -> dict[str, str]:
    """Map source id → model of its stored embedding."""
    result = await db.execute(
        select(EmbeddingRecord.source_id, EmbeddingRecord.model).where(
            EmbeddingRecord.source_type == source_type.value
        )
    )
    return {source_id: model for source_id, model in result.all()}


async def _sources(db: AsyncSession, source_type: SourceType) -> list[tuple[str, str]]:
    """(source id, text to embed) for every source of a type."""
    if source_type is SourceType.SESSION_SUMMARY:
        result = await db.execute(select(SessionMetadataRecord))
        return [
            (
                meta.session_id,
                summary_text(meta.orientation_blurb, meta.unresolved_edge, meta.last_pivot),
            )
            for meta in result.scalars().all()
        ]
    result = await db.execute(select(DocumentChunkRecord))
    return [(chunk.id, chunk.content) for chunk in result.scalars().all()]


async def reembed(
    source_types: list[SourceType],
    mismatched_only: bool = False,
    dry_run: bool = False,
) -> int:
    """
    Re-embed all sources of the given types.

    Returns:
        Number of sources that could not be embedded.
    """
    gateway = EmbeddingGateway.from_settings(settings)
    configured = [b for b in gateway.backends if b.is_configured()]
    if not configured:
        print("✗ No embedding backend configured")
        return 1
    target_model = configured[0].model
    factory = get_session_factory()
    failures = 0

    for source_type in source_types:
        async with factory() as db:
            sources = await _sources(db, source_type)
            models = await _current_models(db, source_type)

            if mismatched_only:
                sources = [s for s in sources if models.get(s[0]) != target_model]

            print(f"{source_type.value}: {len(sources)} to re-embed (target model: {target_model})")
            if dry_run:
                continue

            for i, (source_id, content) in enumerate(sources, 1):
                result = await gateway.embed(content)
                if result is None:
                    failures += 1
                    print(f"✗ {source_id}: embedding failed")
                    continue
                await embedding_repository.store(db, source_type, source_id, result)
                print(f"\r  {i}/{len(sources)}", end="")
            if sources:
                print()

    return failures


def main() -> int:
    parser = argparse.ArgumentParser(description="Re-embed stored sources")
    parser.add_argument(
        "--type",
        choices=[t.value for t in SourceType] + ["all"],
        default="all",
        help="Source type to re-embed",
    )
    parser.add_argument(
        "--mismatched-only",
        action="store_true",
        help="Only re-embed sources stored with a different model",
    )
    parser.add_argument("--dry-run", action="store_true", help="Only report counts")
    args = parser.parse_args()

    setup_logging()
    source_types = (
        list(SourceType) if args.type == "all" else [SourceType(args.type)]
    )

    async def run() -> int:
        try:
            return await reembed(source_types, args.mismatched_only, args.dry_run)
        finally:
            await dispose_engine()

    failures = asyncio.run(run())
    if failures:
        print(f"✗ {failures} sources could not be embedded")
        return 1
    print("✓ Re-embedding complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
