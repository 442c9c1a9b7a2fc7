"""
Similarity Ranker Unit Tests

Cosine bounds, ranking order/threshold/limit, exclusion, per-group
deduplication and model compatibility filtering.
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from inquiry_memory.services.ranking import (
    ScoredCandidate,
    best_per_group,
    compatible,
    cosine_similarity,
    rank,
)


@dataclass
class Candidate:
    source_id: str
    vector: list[float]
    dimension: int = 2
    model: str = "m"


# ---------------------------------------------------------------------------
# cosine_similarity
# ---------------------------------------------------------------------------


class TestCosine:
    def test_identical_vectors_score_one(self):
        v = [0.3, -1.2, 4.5]
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_opposite_vectors_score_minus_one(self):
        assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)

    def test_orthogonal_vectors_score_zero(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0

    def test_zero_vector_scores_zero(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_length_mismatch_scores_zero(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0

    def test_empty_vectors_score_zero(self):
        assert cosine_similarity([], []) == 0.0

    @pytest.mark.parametrize(
        "a, b",
        [
            ([1e-300, 1e-300], [1e-300, 1e-300]),
            ([1e150, 1e150], [1e150, 1e150]),
            ([0.1] * 384, [0.1] * 384),
        ],
    )
    def test_result_is_clamped(self, a, b):
        score = cosine_similarity(a, b)
        assert -1.0 <= score <= 1.0


# ---------------------------------------------------------------------------
# rank
# ---------------------------------------------------------------------------


@pytest.fixture
def candidates() -> list[Candidate]:
    return [
        Candidate("a", [1.0, 0.0]),  # 1.0
        Candidate("b", [1.0, 1.0]),  # ~0.707
        Candidate("c", [0.0, 1.0]),  # 0.0
        Candidate("d", [-1.0, 0.0]),  # -1.0
    ]


class TestRank:
    def test_sorted_descending(self, candidates):
        ranked = rank([1.0, 0.0], candidates)

        assert [c.source_id for c in ranked] == ["a", "b", "c", "d"]
        scores = [c.score for c in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_threshold_is_inclusive(self, candidates):
        ranked = rank([1.0, 0.0], candidates, threshold=0.0)
        assert [c.source_id for c in ranked] == ["a", "b", "c"]

    def test_limit_truncates(self, candidates):
        ranked = rank([1.0, 0.0], candidates, limit=2)
        assert [c.source_id for c in ranked] == ["a", "b"]

    def test_exclusion_happens_before_limit(self, candidates):
        ranked = rank([1.0, 0.0], candidates, limit=2, exclude={"a"})
        assert [c.source_id for c in ranked] == ["b", "c"]

    def test_ties_keep_input_order(self):
        tied = [Candidate("x", [2.0, 0.0]), Candidate("y", [1.0, 0.0])]
        ranked = rank([1.0, 0.0], tied)
        assert [c.source_id for c in ranked] == ["x", "y"]

    def test_empty_query_returns_nothing(self, candidates):
        assert rank([], candidates) == []

    def test_no_candidates(self):
        assert rank([1.0], []) == []


# ---------------------------------------------------------------------------
# best_per_group
# ---------------------------------------------------------------------------


class TestBestPerGroup:
    def test_keeps_best_chunk_per_document_in_rank_order(self):
        # Two chunks of doc A (0.9, 0.7), one of doc B (0.5)
        scored = [
            ScoredCandidate("a1", 0.9),
            ScoredCandidate("a2", 0.7),
            ScoredCandidate("b1", 0.5),
        ]
        groups = {"a1": "A", "a2": "A", "b1": "B"}

        best = best_per_group(scored, lambda c: groups[c.source_id])

        assert [(g, c.source_id, c.score) for g, c in best] == [
            ("A", "a1", 0.9),
            ("B", "b1", 0.5),
        ]

    def test_limit_counts_groups(self):
        scored = [ScoredCandidate(f"c{i}", 1.0 - i / 10) for i in range(6)]
        best = best_per_group(scored, lambda c: c.source_id, limit=3)
        assert len(best) == 3

    def test_unknown_group_is_dropped(self):
        scored = [ScoredCandidate("orphan", 0.9), ScoredCandidate("ok", 0.5)]
        best = best_per_group(scored, lambda c: None if c.source_id == "orphan" else "D")
        assert [g for g, _ in best] == ["D"]


# ---------------------------------------------------------------------------
# compatible
# ---------------------------------------------------------------------------


def test_compatible_drops_other_models_and_dimensions():
    items = [
        Candidate("keep", [1.0, 0.0], dimension=2, model="m"),
        Candidate("other-model", [1.0, 0.0], dimension=2, model="old"),
        Candidate("other-dim", [1.0, 0.0, 0.0], dimension=3, model="m"),
    ]

    kept = compatible(items, "m", 2)

    assert [c.source_id for c in kept] == ["keep"]
