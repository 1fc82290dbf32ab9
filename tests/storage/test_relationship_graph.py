"""
Test RelationshipGraph
======================

Edge integrity and best-first neighbour traversal.
"""

import pytest

from journeyrag.errors import DanglingReference, NotFound
from journeyrag.storage import Edge, RelationType


async def collect(graph, chunk_id, max_depth, decay=0.5):
    return [
        (chunk.id, round(weight, 6), hops)
        async for chunk, weight, hops in graph.neighbors(chunk_id, max_depth=max_depth, decay=decay)
    ]


class TestAddEdge:
    """Test edge insertion."""

    @pytest.mark.asyncio
    async def test_add_and_get(self, graph, add_chunk):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        b = await add_chunk(2, [0.0, 1.0, 0.0])

        edge_id = await graph.add_edge(Edge(
            src_chunk_id=a,
            dst_chunk_id=b,
            rel_type=RelationType.SAME_COMPANY,
            weight=0.7,
            directed=False,
            meta={"source": "test"},
        ))

        edge = await graph.get_edge(edge_id)
        assert (edge.src_chunk_id, edge.dst_chunk_id) == (a, b)
        assert edge.rel_type == "same_company"
        assert edge.weight == pytest.approx(0.7)
        assert edge.directed is False
        assert edge.meta == {"source": "test"}
        assert [e.id for e in await graph.edges_for_chunk(b)] == [edge_id]

    @pytest.mark.asyncio
    async def test_dangling_reference_writes_nothing(self, graph, add_chunk):
        a = await add_chunk(1, [1.0, 0.0, 0.0])

        with pytest.raises(DanglingReference) as exc_info:
            await graph.add_edge(Edge(src_chunk_id=a, dst_chunk_id=999, rel_type="semantic"))

        assert exc_info.value.missing_ids == [999]
        assert await graph.count() == 0

    @pytest.mark.asyncio
    async def test_non_positive_weight_rejected(self, graph, add_chunk):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        b = await add_chunk(2, [0.0, 1.0, 0.0])

        with pytest.raises(ValueError):
            await graph.add_edge(Edge(src_chunk_id=a, dst_chunk_id=b, rel_type="semantic", weight=0.0))

    @pytest.mark.asyncio
    async def test_get_unknown_edge(self, graph):
        with pytest.raises(NotFound):
            await graph.get_edge(42)


class TestNeighbors:
    """Test best-first traversal."""

    @pytest.mark.asyncio
    async def test_directed_edge_followed_forward_only(self, graph, add_chunk, add_edge):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        b = await add_chunk(2, [0.0, 1.0, 0.0])
        await add_edge(a, b, weight=0.8)

        assert await collect(graph, a, max_depth=2) == [(b, 0.4, 1)]
        assert await collect(graph, b, max_depth=2) == []

    @pytest.mark.asyncio
    async def test_undirected_edge_followed_both_ways(self, graph, add_chunk, add_edge):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        b = await add_chunk(2, [0.0, 1.0, 0.0])
        await add_edge(a, b, weight=0.8, directed=False)

        assert await collect(graph, b, max_depth=1) == [(a, 0.4, 1)]

    @pytest.mark.asyncio
    async def test_multiplicative_decay_and_depth_bound(self, graph, add_chunk, add_edge):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        b = await add_chunk(2, [0.0, 1.0, 0.0])
        c = await add_chunk(3, [0.0, 0.0, 1.0])
        d = await add_chunk(4, [1.0, 1.0, 0.0])
        await add_edge(a, b)
        await add_edge(b, c)
        await add_edge(c, d)

        assert await collect(graph, a, max_depth=2) == [(b, 0.5, 1), (c, 0.25, 2)]
        assert await collect(graph, a, max_depth=3) == [(b, 0.5, 1), (c, 0.25, 2), (d, 0.125, 3)]
        assert await collect(graph, a, max_depth=0) == []

    @pytest.mark.asyncio
    async def test_better_path_wins(self, graph, add_chunk, add_edge):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        b = await add_chunk(2, [0.0, 1.0, 0.0])
        c = await add_chunk(3, [0.0, 0.0, 1.0])
        await add_edge(a, c, weight=0.2)
        await add_edge(a, b, weight=1.0)
        await add_edge(b, c, weight=1.0)

        # Two hops at 0.25 beat one hop at 0.1
        assert await collect(graph, a, max_depth=2) == [(b, 0.5, 1), (c, 0.25, 2)]
        # Within one hop only the direct edge counts
        assert await collect(graph, a, max_depth=1) == [(b, 0.5, 1), (c, 0.1, 1)]

    @pytest.mark.asyncio
    async def test_cycles_terminate_and_start_not_yielded(self, graph, add_chunk, add_edge):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        b = await add_chunk(2, [0.0, 1.0, 0.0])
        c = await add_chunk(3, [0.0, 0.0, 1.0])
        await add_edge(a, b, directed=False)
        await add_edge(b, c, directed=False)
        await add_edge(c, a, directed=False)

        results = await collect(graph, a, max_depth=5)
        ids = [chunk_id for chunk_id, _, _ in results]
        assert sorted(ids) == sorted([b, c])
        assert a not in ids

    @pytest.mark.asyncio
    async def test_weights_descending_and_unclamped(self, graph, add_chunk, add_edge):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        b = await add_chunk(2, [0.0, 1.0, 0.0])
        c = await add_chunk(3, [0.0, 0.0, 1.0])
        await add_edge(a, b, weight=3.0)
        await add_edge(a, c, weight=0.6)

        results = await collect(graph, a, max_depth=1)
        assert results == [(b, 1.5, 1), (c, 0.3, 1)]

    @pytest.mark.asyncio
    async def test_heavy_edge_weight_carried_across_hops(self, graph, add_chunk, add_edge):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        x = await add_chunk(2, [0.0, 1.0, 0.0])
        b = await add_chunk(3, [0.0, 0.0, 1.0])
        await add_edge(a, x, weight=4.0)
        await add_edge(x, b, weight=0.5)

        # 4 * 0.5 * 0.5 * 0.5, no per-hop cap
        assert await collect(graph, a, max_depth=2) == [(x, 2.0, 1), (b, 0.5, 2)]

    @pytest.mark.asyncio
    async def test_heavy_edge_improves_already_reached_chunk(self, graph, add_chunk, add_edge):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        x = await add_chunk(2, [0.0, 1.0, 0.0])
        y = await add_chunk(3, [0.0, 0.0, 1.0])
        await add_edge(a, x, weight=1.6)
        await add_edge(a, y, weight=0.4)
        await add_edge(y, x, weight=10.0)

        # a -> y -> x: 0.2 * 10 * 0.5 = 1.0 beats the direct 0.8
        assert await collect(graph, a, max_depth=2) == [(x, 1.0, 2), (y, 0.2, 1)]

    @pytest.mark.asyncio
    async def test_restartable(self, graph, add_chunk, add_edge):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        b = await add_chunk(2, [0.0, 1.0, 0.0])
        await add_edge(a, b, weight=0.9)

        assert await collect(graph, a, max_depth=2) == await collect(graph, a, max_depth=2)

    @pytest.mark.asyncio
    async def test_unknown_start(self, graph):
        with pytest.raises(NotFound):
            await collect(graph, 999, max_depth=2)
