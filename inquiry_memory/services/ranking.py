"""
Similarity Ranker

Pure functions over in-memory vectors: cosine similarity, top-K
ranking with an optional threshold, and per-group deduplication.

Every ranking is a full linear scan over the candidates of the
requested source type. No index structure is maintained; this is
sized for a single user with thousands of items, not more.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Collection, Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

logger = logging.getLogger(__name__)


class VectorCandidate(Protocol):
    """Anything with a source id and a vector (e.g. EmbeddingRecord)."""

    source_id: str
    vector: list[float]


class TaggedCandidate(VectorCandidate, Protocol):
    dimension: int
    model: str


T = TypeVar("T", bound=TaggedCandidate)


@dataclass(frozen=True)
class ScoredCandidate:
    """Ephemeral ranking result. Never persisted."""

    source_id: str
    score: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity ``dot(a, b) / (|a| * |b|)``.

    Returns 0.0 when either vector has zero magnitude or the vectors
    have different lengths. The result is clamped to [-1, 1] to absorb
    floating-point drift.
    """
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    return max(-1.0, min(1.0, score))


def rank(
    query_vector: Sequence[float],
    candidates: Iterable[VectorCandidate],
    *,
    limit: int | None = None,
    threshold: float | None = None,
    exclude: Collection[str] = (),
) -> list[ScoredCandidate]:
    """
    Score candidates against a query vector.

    Args:
        query_vector: Vector to compare against.
        candidates: Embeddings to score.
        limit: Maximum number of results (None = all).
        threshold: Minimum score to keep (inclusive).
        exclude: Source ids removed before scoring, so they never take
            a slot out of ``limit``.

    Returns:
        Candidates sorted by descending score.
    """
    if not query_vector:
        return []

    scored = [
        ScoredCandidate(candidate.source_id, cosine_similarity(query_vector, candidate.vector))
        for candidate in candidates
        if candidate.source_id not in exclude
    ]
    if threshold is not None:
        scored = [c for c in scored if c.score >= threshold]

    scored.sort(key=lambda c: c.score, reverse=True)
    if limit is not None:
        scored = scored[: max(limit, 0)]
    return scored


def best_per_group(
    scored: Iterable[ScoredCandidate],
    group_of: Callable[[ScoredCandidate], str | None],
    limit: int | None = None,
) -> list[tuple[str, ScoredCandidate]]:
    """
    Keep only the highest-scoring candidate of each group.

    ``scored`` must already be in rank order; the first candidate seen
    for a group wins and overall order is preserved. Candidates whose
    group is None (e.g. a chunk whose document vanished) are dropped.
    """
    seen: set[str] = set()
    best: list[tuple[str, ScoredCandidate]] = []
    for candidate in scored:
        group = group_of(candidate)
        if group is None or group in seen:
            continue
        seen.add(group)
        best.append((group, candidate))
        if limit is not None and len(best) >= limit:
            break
    return best


def compatible(
    candidates: Iterable[T], model: str, dimension: int
) -> list[T]:
    """
    Drop candidates embedded by a different model or with a different
    dimension than the query vector.
    """
    kept: list[T] = []
    skipped = 0
    for candidate in candidates:
        if candidate.model == model and candidate.dimension == dimension:
            kept.append(candidate)
        else:
            skipped += 1

    if skipped:
        logger.warning(
            "Skipped %d embeddings from another model/dimension (query: %s/%d); "
            "run scripts/reembed.py after switching backends",
            skipped,
            model,
            dimension,
        )
    return kept
