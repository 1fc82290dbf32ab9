"""
Test IngestionService
=====================

Validated chunk / edge creation and node re-indexing.
"""

import pytest
from pydantic import ValidationError

from journeyrag.errors import DanglingReference, InvalidEmbeddingDimension
from journeyrag.services import ChunkCreate, IngestionService


class FixedEmbedder:
    async def embed(self, text):
        return [0.0, 1.0, 0.0]


@pytest.fixture
def ingestion(chunk_store, graph):
    return IngestionService(chunk_store, graph, embedder=FixedEmbedder())


class TestCreateChunk:
    """Test chunk creation."""

    @pytest.mark.asyncio
    async def test_camel_case_payload(self, ingestion, chunk_store):
        chunk_id = await ingestion.create_chunk({
            "ownerId": 3,
            "nodeId": "node-3",
            "text": "Backend engineer at Acme",
            "embedding": [0.2, 0.3, 0.4],
            "entityType": "job",
            "meta": {"company": "Acme"},
        })

        chunk = await chunk_store.get(chunk_id)
        assert (chunk.owner_id, chunk.node_id, chunk.entity_type) == (3, "node-3", "job")
        assert chunk.meta == {"company": "Acme"}

    @pytest.mark.asyncio
    async def test_model_input(self, ingestion, chunk_store):
        chunk_id = await ingestion.create_chunk(ChunkCreate(
            owner_id=1, text="Student", embedding=[1.0, 0.0, 0.0], entity_type="education",
        ))
        assert (await chunk_store.get(chunk_id)).entity_type == "education"

    @pytest.mark.asyncio
    async def test_wrong_dimension_writes_nothing(self, ingestion, chunk_store):
        with pytest.raises(InvalidEmbeddingDimension):
            await ingestion.create_chunk({"ownerId": 1, "text": "x", "embedding": [1.0], "entityType": "job"})
        assert await chunk_store.count() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"ownerId": 1, "text": "", "embedding": [1.0, 0.0, 0.0], "entityType": "job"},
        {"ownerId": 1, "text": "x", "embedding": [], "entityType": "job"},
        {"text": "x", "embedding": [1.0, 0.0, 0.0], "entityType": "job"},
    ])
    async def test_malformed_payload(self, ingestion, payload):
        with pytest.raises(ValidationError):
            await ingestion.create_chunk(payload)

    @pytest.mark.asyncio
    async def test_from_text_uses_embedder(self, ingestion, chunk_store):
        chunk_id = await ingestion.create_chunk_from_text(owner_id=5, text="Designer", entity_type="job")
        assert (await chunk_store.get(chunk_id)).embedding == pytest.approx([0.0, 1.0, 0.0])

    @pytest.mark.asyncio
    async def test_from_text_without_embedder(self, chunk_store, graph):
        with pytest.raises(RuntimeError):
            await IngestionService(chunk_store, graph).create_chunk_from_text(1, "x", "job")


class TestCreateEdge:
    """Test edge creation."""

    @pytest.mark.asyncio
    async def test_create_edge(self, ingestion, graph, add_chunk):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        b = await add_chunk(2, [0.0, 1.0, 0.0])

        edge_id = await ingestion.create_edge({
            "srcChunkId": a,
            "dstChunkId": b,
            "relType": "same_company",
            "weight": 0.8,
            "directed": False,
        })

        edge = await graph.get_edge(edge_id)
        assert edge.weight == pytest.approx(0.8)
        assert edge.directed is False

    @pytest.mark.asyncio
    async def test_non_positive_weight(self, ingestion, add_chunk):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        with pytest.raises(ValidationError):
            await ingestion.create_edge({"srcChunkId": a, "dstChunkId": a, "relType": "semantic", "weight": 0})

    @pytest.mark.asyncio
    async def test_dangling_reference(self, ingestion, graph, add_chunk):
        a = await add_chunk(1, [1.0, 0.0, 0.0])
        with pytest.raises(DanglingReference):
            await ingestion.create_edge({"srcChunkId": 404, "dstChunkId": a, "relType": "semantic"})
        assert await graph.count() == 0


class TestReplaceNodeChunks:
    """Test node re-indexing."""

    @pytest.mark.asyncio
    async def test_replaces_chunks_and_edges(self, ingestion, chunk_store, graph, add_chunk, add_edge):
        old = await add_chunk(1, [1.0, 0.0, 0.0], node_id="n1")
        other = await add_chunk(2, [0.0, 1.0, 0.0], node_id="n2")
        await add_edge(old, other)

        ids = await ingestion.replace_node_chunks("n1", [
            {"ownerId": 1, "text": "new a", "embedding": [1.0, 1.0, 0.0], "entityType": "job"},
            {"ownerId": 1, "text": "new b", "embedding": [1.0, 0.0, 1.0], "entityType": "job", "nodeId": "n1"},
        ])

        chunks = await chunk_store.get_chunks_by_node_id("n1")
        assert [c.id for c in chunks] == ids
        assert [c.text for c in chunks] == ["new a", "new b"]
        assert await graph.edges_for_chunk(other) == []

    @pytest.mark.asyncio
    async def test_invalid_input_removes_nothing(self, ingestion, chunk_store, add_chunk):
        old = await add_chunk(1, [1.0, 0.0, 0.0], node_id="n1")

        with pytest.raises(InvalidEmbeddingDimension):
            await ingestion.replace_node_chunks("n1", [
                {"ownerId": 1, "text": "ok", "embedding": [1.0, 0.0, 0.0], "entityType": "job"},
                {"ownerId": 1, "text": "bad", "embedding": [1.0], "entityType": "job"},
            ])
        with pytest.raises(ValueError):
            await ingestion.replace_node_chunks("n1", [
                {"ownerId": 1, "text": "x", "embedding": [1.0, 0.0, 0.0], "entityType": "job", "nodeId": "n9"},
            ])

        assert [c.id for c in await chunk_store.get_chunks_by_node_id("n1")] == [old]

    @pytest.mark.asyncio
    async def test_failure_mid_insert_restores_old_chunks(self, ingestion, chunk_store, graph, add_chunk, add_edge, monkeypatch):
        old = await add_chunk(1, [1.0, 0.0, 0.0], node_id="n1")
        other = await add_chunk(2, [0.0, 1.0, 0.0], node_id="n2")
        await add_edge(old, other)

        stage = chunk_store.stage
        staged = []

        def failing_stage(session, chunk):
            staged.append(chunk)
            if len(staged) == 2:
                raise RuntimeError("disk full")
            return stage(session, chunk)

        monkeypatch.setattr(chunk_store, "stage", failing_stage)

        with pytest.raises(RuntimeError):
            await ingestion.replace_node_chunks("n1", [
                {"ownerId": 1, "text": "new a", "embedding": [1.0, 1.0, 0.0], "entityType": "job"},
                {"ownerId": 1, "text": "new b", "embedding": [1.0, 0.0, 1.0], "entityType": "job"},
            ])

        assert [c.id for c in await chunk_store.get_chunks_by_node_id("n1")] == [old]
        assert len(await graph.edges_for_chunk(other)) == 1


class TestIngestBatch:
    """Test all-or-nothing batch ingestion."""

    CHUNKS = {
        "a": {"ownerId": 1, "text": "Data engineer", "embedding": [1.0, 0.0, 0.0], "entityType": "job"},
        "b": {"ownerId": 2, "text": "Analyst", "embedding": [0.0, 1.0, 0.0], "entityType": "job"},
    }

    @pytest.mark.asyncio
    async def test_keys_resolved(self, ingestion, chunk_store, graph):
        chunk_ids, edge_ids = await ingestion.ingest_batch(
            self.CHUNKS,
            [{"src": "a", "dst": "b", "relType": "similar_role", "weight": 0.7}],
        )

        assert set(chunk_ids) == {"a", "b"}
        edge = await graph.get_edge(edge_ids[0])
        assert (edge.src_chunk_id, edge.dst_chunk_id) == (chunk_ids["a"], chunk_ids["b"])
        assert await chunk_store.count() == 2

    @pytest.mark.asyncio
    async def test_edge_to_existing_chunk(self, ingestion, graph, add_chunk):
        existing = await add_chunk(9, [0.0, 0.0, 1.0])

        _, edge_ids = await ingestion.ingest_batch(
            {"a": self.CHUNKS["a"]},
            [{"src": "a", "dstChunkId": existing, "relType": "semantic"}],
        )
        assert (await graph.get_edge(edge_ids[0])).dst_chunk_id == existing

    @pytest.mark.asyncio
    async def test_bad_dimension_writes_nothing(self, ingestion, chunk_store):
        chunks = dict(self.CHUNKS, c={"ownerId": 3, "text": "x", "embedding": [1.0, 0.0], "entityType": "job"})

        with pytest.raises(InvalidEmbeddingDimension):
            await ingestion.ingest_batch(chunks)
        assert await chunk_store.count() == 0

    @pytest.mark.asyncio
    async def test_dangling_edge_rolls_back_chunks(self, ingestion, chunk_store, graph):
        with pytest.raises(DanglingReference):
            await ingestion.ingest_batch(self.CHUNKS, [
                {"src": "a", "dst": "b", "relType": "similar_role"},
                {"src": "a", "dstChunkId": 404, "relType": "semantic"},
            ])

        assert await chunk_store.count() == 0
        assert await graph.count() == 0
