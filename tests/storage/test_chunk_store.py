"""
Test ChunkStore
===============

Insertion, lookup, similarity search and cascade removal.
"""

import asyncio
from datetime import timedelta

import pytest

from journeyrag.errors import EmptyQueryEmbedding, InvalidEmbeddingDimension, NotFound, RetrievalTimeout
from journeyrag.storage import Chunk, SimilarityFilters
from journeyrag.storage.utils import with_timeout


class TestPut:
    """Test chunk insertion."""

    @pytest.mark.asyncio
    async def test_put_and_get(self, chunk_store, now):
        chunk_id = await chunk_store.put(Chunk(
            owner_id=1,
            node_id="node-1",
            text="Senior data engineer",
            embedding=[0.1, 0.2, 0.3],
            entity_type="job",
            meta={"company": "Acme"},
            created_at=now,
        ))

        chunk = await chunk_store.get(chunk_id)
        assert chunk.id == chunk_id
        assert chunk.owner_id == 1
        assert chunk.node_id == "node-1"
        assert chunk.text == "Senior data engineer"
        assert chunk.embedding == pytest.approx([0.1, 0.2, 0.3])
        assert chunk.meta == {"company": "Acme"}
        assert chunk.created_at == now

    @pytest.mark.asyncio
    async def test_default_tenant_applied(self, chunk_store, add_chunk):
        chunk_id = await add_chunk(1, [1.0, 0.0, 0.0])
        chunk = await chunk_store.get(chunk_id)
        assert chunk.tenant_id == "default"

    @pytest.mark.asyncio
    async def test_wrong_dimension_writes_nothing(self, chunk_store):
        with pytest.raises(InvalidEmbeddingDimension) as exc_info:
            await chunk_store.put(Chunk(owner_id=1, text="x", embedding=[1.0, 0.0], entity_type="job"))

        assert exc_info.value.expected == 3
        assert exc_info.value.actual == 2
        assert await chunk_store.count() == 0

    @pytest.mark.asyncio
    async def test_get_unknown_raises_not_found(self, chunk_store):
        with pytest.raises(NotFound):
            await chunk_store.get(12345)

    @pytest.mark.asyncio
    async def test_update_meta_merges(self, chunk_store, add_chunk):
        chunk_id = await add_chunk(1, [1.0, 0.0, 0.0], meta={"a": 1})

        updated = await chunk_store.update_meta(chunk_id, {"b": 2})
        assert updated.meta == {"a": 1, "b": 2}

        replaced = await chunk_store.update_meta(chunk_id, {"c": 3}, merge=False)
        assert replaced.meta == {"c": 3}


class TestLookups:
    """Test lookups by node and owner."""

    @pytest.mark.asyncio
    async def test_by_node_and_user(self, chunk_store, add_chunk):
        a = await add_chunk(1, [1.0, 0.0, 0.0], node_id="n1")
        b = await add_chunk(1, [0.0, 1.0, 0.0], node_id="n1")
        c = await add_chunk(2, [0.0, 0.0, 1.0], node_id="n2", tenant_id="other")

        assert [ch.id for ch in await chunk_store.get_chunks_by_node_id("n1")] == [a, b]
        assert [ch.id for ch in await chunk_store.get_chunks_by_user_id(2)] == [c]
        assert await chunk_store.get_chunks_by_user_id(2, tenant_id="default") == []
        assert await chunk_store.count() == 3
        assert await chunk_store.count(tenant_id="other") == 1

    @pytest.mark.asyncio
    async def test_get_many_skips_unknown(self, chunk_store, add_chunk):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        found = await chunk_store.get_many([a, 999])
        assert set(found) == {a}


class TestQueryBySimilarity:
    """Test cosine similarity search."""

    @pytest.mark.asyncio
    async def test_ordering_by_similarity(self, chunk_store, add_chunk):
        exact = await add_chunk(1, [1.0, 0.0, 0.0])
        diagonal = await add_chunk(2, [1.0, 1.0, 0.0])
        orthogonal = await add_chunk(3, [0.0, 1.0, 0.0])

        results = await chunk_store.query_by_similarity([2.0, 0.0, 0.0], k=10)

        assert [chunk.id for chunk, _ in results] == [exact, diagonal, orthogonal]
        assert results[0][1] == pytest.approx(1.0)
        assert results[1][1] == pytest.approx(2 ** -0.5)
        assert results[2][1] == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_ties_broken_by_id(self, chunk_store, add_chunk):
        first = await add_chunk(1, [0.0, 1.0, 0.0])
        second = await add_chunk(2, [0.0, 2.0, 0.0])

        results = await chunk_store.query_by_similarity([0.0, 1.0, 0.0], k=10)
        assert [chunk.id for chunk, _ in results] == [first, second]

    @pytest.mark.asyncio
    async def test_k_limits_results(self, chunk_store, add_chunk):
        for owner in range(5):
            await add_chunk(owner, [1.0, float(owner), 0.0])

        results = await chunk_store.query_by_similarity([1.0, 0.0, 0.0], k=2)
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_filters(self, chunk_store, add_chunk, now):
        own = await add_chunk(1, [1.0, 0.0, 0.0])
        other_tenant = await add_chunk(2, [1.0, 0.0, 0.0], tenant_id="acme")
        old = await add_chunk(3, [1.0, 0.0, 0.0], created_at=now - timedelta(days=400))
        weak = await add_chunk(4, [0.1, 1.0, 0.0])
        good = await add_chunk(5, [1.0, 0.1, 0.0])

        results = await chunk_store.query_by_similarity(
            [1.0, 0.0, 0.0],
            SimilarityFilters(
                tenant_id="default",
                exclude_user_id=1,
                since=now - timedelta(days=100),
                min_similarity=0.5,
            ),
            k=10,
        )

        ids = [chunk.id for chunk, _ in results]
        assert ids == [good]
        assert own not in ids and other_tenant not in ids and old not in ids and weak not in ids

    @pytest.mark.asyncio
    async def test_zero_query_rejected(self, chunk_store):
        with pytest.raises(EmptyQueryEmbedding):
            await chunk_store.query_by_similarity([0.0, 0.0, 0.0])

    @pytest.mark.asyncio
    async def test_query_dimension_checked(self, chunk_store):
        with pytest.raises(InvalidEmbeddingDimension):
            await chunk_store.query_by_similarity([1.0, 0.0])


class TestRemoval:
    """Test cascade removal of chunks and edges."""

    @pytest.mark.asyncio
    async def test_remove_by_node_cascades_edges(self, chunk_store, graph, add_chunk, add_edge):
        a = await add_chunk(1, [1.0, 0.0, 0.0], node_id="n1")
        b = await add_chunk(2, [0.0, 1.0, 0.0], node_id="n2")
        await add_edge(a, b)

        removed = await chunk_store.remove_chunks_by_node_id("n1")

        assert removed == 1
        assert await chunk_store.exists([a, b]) == {b}
        assert await graph.edges_for_chunk(b) == []

    @pytest.mark.asyncio
    async def test_remove_by_user(self, chunk_store, add_chunk):
        await add_chunk(7, [1.0, 0.0, 0.0])
        await add_chunk(7, [0.0, 1.0, 0.0])
        keep = await add_chunk(8, [0.0, 0.0, 1.0])

        assert await chunk_store.remove_chunks_by_user_id(7) == 2
        assert await chunk_store.remove_chunks_by_user_id(7) == 0
        assert await chunk_store.exists([keep]) == {keep}


class TestWithTimeout:
    """Test store call timeouts."""

    @pytest.mark.asyncio
    async def test_timeout_raises_retrieval_timeout(self):
        with pytest.raises(RetrievalTimeout) as exc_info:
            await with_timeout(asyncio.sleep(1), 0.01, "query_by_similarity")
        assert exc_info.value.operation == "query_by_similarity"

    @pytest.mark.asyncio
    async def test_no_timeout_passes_through(self):
        assert await with_timeout(asyncio.sleep(0, result=42), None, "op") == 42
