"""
Test ScoreFusion
================

Recency, weighted fusion, deterministic ranking and profile aggregation.
"""

import math
from datetime import datetime, timedelta

import pytest

from journeyrag.storage.models import Chunk
from journeyrag.storage.retriever import ExpansionResult, RetrieverConfig, ScoreFusion, ScoredChunk, rank_key
from journeyrag.storage.retriever.fusion import WHY_GRAPH, WHY_RECENCY, WHY_SIMILARITY

NOW = datetime(2026, 1, 15, 12, 0, 0)


def make_chunk(chunk_id, owner_id=1, node_id=None, created_at=NOW):
    return Chunk(
        owner_id=owner_id,
        text=f"chunk {chunk_id}",
        embedding=[1.0, 0.0, 0.0],
        entity_type="job",
        node_id=node_id,
        id=chunk_id,
        created_at=created_at,
    )


def scored(chunk, final):
    return ScoredChunk(
        chunk=chunk,
        direct_similarity=final,
        graph_aware_score=final,
        recency_score=0.0,
        final_score=final,
    )


@pytest.fixture
def fusion():
    return ScoreFusion(RetrieverConfig())


class TestRecency:
    """Test exponential recency decay."""

    def test_age_zero(self, fusion):
        assert fusion.recency_score(NOW, NOW) == pytest.approx(1.0)

    def test_one_half_life(self, fusion):
        assert fusion.recency_score(NOW - timedelta(days=90), NOW) == pytest.approx(math.exp(-1))

    def test_future_counts_as_now(self, fusion):
        assert fusion.recency_score(NOW + timedelta(days=3), NOW) == pytest.approx(1.0)

    def test_custom_half_life(self):
        fusion = ScoreFusion(RetrieverConfig(recency_half_life_days=30))
        assert fusion.recency_score(NOW - timedelta(days=30), NOW) == pytest.approx(math.exp(-1))


class TestFuse:
    """Test weighted fusion."""

    def test_final_score_formula(self, fusion):
        assert fusion.final_score(0.8, 0.5, 1.0) == pytest.approx(0.6 * 0.8 + 0.3 * 0.5 + 0.1 * 1.0)

    def test_non_seed_has_zero_direct_similarity(self, fusion):
        seed = make_chunk(1, owner_id=1)
        reached = make_chunk(2, owner_id=2, created_at=NOW - timedelta(days=30))
        expansions = {
            1: ExpansionResult(seed, 0.9, 1.0, 0, 1),
            2: ExpansionResult(reached, 0.9, 0.4, 1, 1),
        }

        ranked = fusion.fuse([(seed, 0.9)], expansions, now=NOW)
        by_id = {s.chunk.id: s for s in ranked}

        assert by_id[2].direct_similarity == 0.0
        assert by_id[2].graph_aware_score == pytest.approx(0.36)
        assert by_id[2].final_score == pytest.approx(0.3 * 0.36 + 0.1 * math.exp(-30 / 90))
        assert by_id[1].graph_aware_score == pytest.approx(by_id[1].direct_similarity)

    def test_chunks_deduplicated(self, fusion):
        seed = make_chunk(1)
        expansions = {1: ExpansionResult(seed, 0.9, 1.0, 0, 1)}

        ranked = fusion.fuse([(seed, 0.9)], expansions, now=NOW)
        assert [s.chunk.id for s in ranked] == [1]

    def test_ties_broken_by_created_at_then_id(self, fusion):
        older = make_chunk(1, created_at=NOW - timedelta(days=2))
        newer_high_id = make_chunk(3, created_at=NOW - timedelta(days=1))
        newer_low_id = make_chunk(2, created_at=NOW - timedelta(days=1))

        items = [scored(older, 0.5), scored(newer_high_id, 0.5), scored(newer_low_id, 0.5), scored(make_chunk(4), 0.6)]
        items.sort(key=rank_key)

        assert [s.chunk.id for s in items] == [4, 2, 3, 1]


class TestWhyMatched:
    """Test the dominant-signal reason."""

    def test_similarity_dominant(self, fusion):
        assert fusion.why_matched(0.9, 0.9, 1.0) == WHY_SIMILARITY

    def test_graph_dominant(self, fusion):
        assert fusion.why_matched(0.0, 0.36, 0.5) == WHY_GRAPH

    def test_recency_dominant(self, fusion):
        assert fusion.why_matched(0.0, 0.1, 1.0) == WHY_RECENCY

    def test_deterministic_tie(self, fusion):
        # 0.6 * 0.5 == 0.3 * 1.0
        assert fusion.why_matched(0.5, 1.0, 0.0) == WHY_SIMILARITY


class TestAggregate:
    """Test profile-level aggregation."""

    def test_profile_score_is_max(self, fusion):
        ranked = [scored(make_chunk(1, owner_id=7, node_id="a"), 0.75), scored(make_chunk(2, owner_id=7, node_id="b"), 0.55)]

        profiles = fusion.aggregate(ranked, limit=10)

        assert len(profiles) == 1
        assert profiles[0].score == pytest.approx(0.75)
        assert [n.final_score for n in profiles[0].matched_nodes] == [0.75, 0.55]

    def test_profiles_sorted_and_truncated(self, fusion):
        ranked = [
            scored(make_chunk(1, owner_id=1), 0.9),
            scored(make_chunk(2, owner_id=2), 0.8),
            scored(make_chunk(3, owner_id=1), 0.7),
            scored(make_chunk(4, owner_id=3), 0.6),
        ]

        profiles = fusion.aggregate(ranked, limit=2)
        assert [p.user_id for p in profiles] == [1, 2]

    def test_matched_nodes_capped(self):
        fusion = ScoreFusion(RetrieverConfig(max_matched_nodes=2))
        ranked = [scored(make_chunk(i, owner_id=1, node_id=f"n{i}"), 1.0 - i / 10) for i in range(1, 5)]

        profiles = fusion.aggregate(ranked, limit=5)
        assert [n.chunk.id for n in profiles[0].matched_nodes] == [1, 2]

    def test_one_chunk_per_source_node(self, fusion):
        ranked = [
            scored(make_chunk(1, owner_id=1, node_id="n1"), 0.9),
            scored(make_chunk(2, owner_id=1, node_id="n1"), 0.8),
            scored(make_chunk(3, owner_id=1, node_id=None), 0.7),
            scored(make_chunk(4, owner_id=1, node_id=None), 0.6),
        ]

        profiles = fusion.aggregate(ranked, limit=5)
        assert [n.chunk.id for n in profiles[0].matched_nodes] == [1, 3, 4]
