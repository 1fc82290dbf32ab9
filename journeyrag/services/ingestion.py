"""
Ingestion Service
=================

Validated creation of chunks and edges. Each call either writes fully or
raises without writing.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

import structlog

from journeyrag.errors import JourneyRAGError
from journeyrag.services.interfaces import EmbeddingGenerator
from journeyrag.services.models import ChunkCreate, EdgeCreate
from journeyrag.storage.graph import RelationshipGraph
from journeyrag.storage.models import Chunk, Edge
from journeyrag.storage.vectors import ChunkStore

log = structlog.get_logger()


class IngestionService:
    """
    Entry point for writes into the chunk store and relationship graph.

    Example:
        service = IngestionService(chunk_store, graph)
        a = await service.create_chunk({"ownerId": 1, "text": "...", "embedding": v, "entityType": "job"})
        b = await service.create_chunk(ChunkCreate(owner_id=2, text="...", embedding=w, entity_type="job"))
        await service.create_edge({"srcChunkId": a, "dstChunkId": b, "relType": "similar_role", "weight": 0.8})
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        graph: RelationshipGraph,
        embedder: Optional[EmbeddingGenerator] = None,
    ):
        self.chunk_store = chunk_store
        self.graph = graph
        self.embedder = embedder

    @staticmethod
    def _chunk_request(data: Union[ChunkCreate, Dict[str, Any]]) -> ChunkCreate:
        return data if isinstance(data, ChunkCreate) else ChunkCreate.model_validate(data)

    @staticmethod
    def _to_chunk(request: ChunkCreate) -> Chunk:
        return Chunk(
            owner_id=request.owner_id,
            node_id=request.node_id,
            text=request.text,
            embedding=request.embedding,
            entity_type=request.entity_type,
            meta=request.meta,
            tenant_id=request.tenant_id,
            created_at=request.created_at,
        )

    @staticmethod
    def _to_edge(request: EdgeCreate) -> Edge:
        return Edge(
            src_chunk_id=request.src_chunk_id,
            dst_chunk_id=request.dst_chunk_id,
            rel_type=request.rel_type,
            weight=request.weight,
            directed=request.directed,
            meta=request.meta,
        )

    async def create_chunk(self, data: Union[ChunkCreate, Dict[str, Any]]) -> int:
        """
        Store one chunk.

        Raises:
            pydantic.ValidationError: Malformed input.
            InvalidEmbeddingDimension: Vector length differs from the deployment.
        """
        request = self._chunk_request(data)
        try:
            return await self.chunk_store.put(self._to_chunk(request))
        except JourneyRAGError as e:
            log.error("Chunk ingestion failed", owner_id=request.owner_id, node_id=request.node_id, error=str(e))
            raise

    async def create_chunk_from_text(
        self,
        owner_id: int,
        text: str,
        entity_type: str,
        node_id: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
        tenant_id: Optional[str] = None,
    ) -> int:
        """Embed text with the configured generator, then store it."""
        if self.embedder is None:
            raise RuntimeError("No EmbeddingGenerator configured")
        embedding = await self.embedder.embed(text)
        return await self.create_chunk(ChunkCreate(
            owner_id=owner_id,
            node_id=node_id,
            text=text,
            embedding=list(embedding),
            entity_type=entity_type,
            meta=meta or {},
            tenant_id=tenant_id,
        ))

    async def create_edge(self, data: Union[EdgeCreate, Dict[str, Any]]) -> int:
        """
        Store one edge.

        Raises:
            pydantic.ValidationError: Malformed input (including weight <= 0).
            DanglingReference: Either endpoint does not exist.
        """
        request = data if isinstance(data, EdgeCreate) else EdgeCreate.model_validate(data)
        try:
            return await self.graph.add_edge(self._to_edge(request))
        except JourneyRAGError as e:
            log.error(
                "Edge ingestion failed",
                src=request.src_chunk_id,
                dst=request.dst_chunk_id,
                error=str(e),
            )
            raise

    async def ingest_batch(
        self,
        chunks: Dict[str, Union[ChunkCreate, Dict[str, Any]]],
        edges: Optional[List[Dict[str, Any]]] = None,
    ) -> Tuple[Dict[str, int], List[int]]:
        """
        Store keyed chunks and edges in a single transaction.

        Edges reference chunks by srcChunkId/dstChunkId, or by "src"/"dst"
        keys of the chunks mapping. Either everything is committed or nothing
        is written.

        Returns:
            (chunk ids by key, edge ids in input order)

        Raises:
            pydantic.ValidationError: Malformed chunk or edge.
            InvalidEmbeddingDimension: A chunk vector has the wrong length.
            KeyError: An edge references an unknown chunk key.
            DanglingReference: An edge references an unknown chunk id.
        """
        requests = {key: self._chunk_request(data) for key, data in chunks.items()}
        for request in requests.values():
            self.chunk_store.check_dimension(request.embedding)
        for edge in edges or []:
            for ref in ("src", "dst"):
                if ref in edge and str(edge[ref]) not in requests:
                    raise KeyError(str(edge[ref]))

        try:
            async with self.chunk_store.database.session() as session:
                rows = {key: self.chunk_store.stage(session, self._to_chunk(r)) for key, r in requests.items()}
                await session.flush()
                chunk_ids = {key: row.id for key, row in rows.items()}

                edge_rows = []
                for edge in edges or []:
                    edge = dict(edge)
                    if "src" in edge:
                        edge["srcChunkId"] = chunk_ids[str(edge.pop("src"))]
                    if "dst" in edge:
                        edge["dstChunkId"] = chunk_ids[str(edge.pop("dst"))]
                    request = EdgeCreate.model_validate(edge)
                    edge_rows.append(await self.graph.stage(session, self._to_edge(request)))

                # Leaving the session without commit rolls every staged row back
                await session.commit()
                edge_ids = [row.id for row in edge_rows]
        except JourneyRAGError as e:
            log.error("Batch ingestion failed", chunks=len(requests), edges=len(edges or []), error=str(e))
            raise

        log.info("Batch ingested", chunks=len(chunk_ids), edges=len(edge_ids))
        return chunk_ids, edge_ids

    async def replace_node_chunks(self, node_id: str, chunks: List[Union[ChunkCreate, Dict[str, Any]]]) -> List[int]:
        """
        Re-index a timeline node: drop its chunks (and their edges), store new ones.

        Inputs are validated before anything is removed, and the removal and
        the inserts commit together.
        """
        requests = [self._chunk_request(c) for c in chunks]
        for request in requests:
            if request.node_id not in (None, node_id):
                raise ValueError(f"chunk node_id {request.node_id!r} does not match {node_id!r}")
            self.chunk_store.check_dimension(request.embedding)

        async with self.chunk_store.database.session() as session:
            removed = await self.chunk_store.stage_removal_by_node_id(session, node_id)
            rows = [
                self.chunk_store.stage(session, self._to_chunk(request.model_copy(update={"node_id": node_id})))
                for request in requests
            ]
            await session.commit()
            ids = [row.id for row in rows]

        log.info("Node re-indexed", node_id=node_id, removed=removed, created=len(ids))
        return ids
