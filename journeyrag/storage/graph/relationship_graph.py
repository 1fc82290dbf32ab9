"""
Relationship Graph
==================

Typed, weighted, optionally directed edges between chunks, and best-first
neighbourhood traversal over them.

Traversal model:
    - A directed edge is followed src -> dst only; an undirected edge both ways.
    - Path weights are multiplicative: crossing an edge of weight e from a
      path of weight w with decay d gives w * e * d. Weights are not clamped
      here; callers clamp the best weight they keep.
    - Labels are (hops, weight) pairs per chunk. A new label is dropped when
      an existing one reaches the chunk in no more hops with at least the same
      weight; otherwise the chunk is re-enqueued (revisit on strictly better).
    - When every hop factor e * d is <= 1, the first time a chunk is popped
      its weight is its best weight within max_depth, so it is emitted right
      away. With heavier edges a later path can still improve a popped chunk:
      the whole bounded neighbourhood is relaxed first and then emitted by
      descending weight.
"""

import heapq
from typing import AsyncIterator, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from journeyrag.errors import DanglingReference, NotFound
from journeyrag.storage.database import Database
from journeyrag.storage.models import Chunk, Edge
from journeyrag.storage.orm import ChunkRow, EdgeRow
from journeyrag.storage.utils import Deadline, utcnow, with_timeout

log = structlog.get_logger()

Label = Tuple[int, float]


def _dominated(labels: List[Label], hops: int, weight: float) -> bool:
    return any(h <= hops and w >= weight for h, w in labels)


class RelationshipGraph:
    """
    Durable store of chunk relationships.

    Example:
        graph = RelationshipGraph(database)
        await graph.add_edge(Edge(src_chunk_id=1, dst_chunk_id=2, rel_type="parent_child"))

        async for chunk, weight, hops in graph.neighbors(1, max_depth=2, decay=0.5):
            print(chunk.id, weight, hops)
    """

    def __init__(self, database: Database):
        self.database = database
        log.info("RelationshipGraph initialized")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_edge(self, edge: Edge) -> int:
        """
        Insert an edge.

        Returns:
            The new edge id

        Raises:
            ValueError: weight is not > 0.
            DanglingReference: Either endpoint does not exist (nothing written).
        """
        async with self.database.session() as session:
            row = await self.stage(session, edge)
            await session.commit()
            edge_id = row.id

        log.debug(
            "Edge stored",
            edge_id=edge_id,
            src=edge.src_chunk_id,
            dst=edge.dst_chunk_id,
            rel_type=row.rel_type,
        )
        return edge_id

    async def stage(self, session: AsyncSession, edge: Edge) -> EdgeRow:
        """
        Add an edge row to an open session without committing.

        Endpoints are resolved through the same session, so chunks staged
        earlier in it count as present.

        Raises:
            ValueError: weight is not > 0.
            DanglingReference: Either endpoint does not exist.
        """
        if not edge.weight > 0:
            raise ValueError(f"edge weight must be > 0, got {edge.weight}")

        rel_type = getattr(edge.rel_type, "value", edge.rel_type)
        endpoints = {edge.src_chunk_id, edge.dst_chunk_id}

        found = set((await session.execute(
            select(ChunkRow.id).where(ChunkRow.id.in_(endpoints))
        )).scalars())
        missing = endpoints - found
        if missing:
            raise DanglingReference(sorted(missing))

        row = EdgeRow(
            src_chunk_id=edge.src_chunk_id,
            dst_chunk_id=edge.dst_chunk_id,
            rel_type=str(rel_type),
            weight=float(edge.weight),
            directed=bool(edge.directed),
            meta=dict(edge.meta or {}),
            created_at=utcnow(),
        )
        session.add(row)
        return row

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_edge(self, edge_id: int) -> Edge:
        async with self.database.session() as session:
            row = await session.get(EdgeRow, edge_id)
            if row is None:
                raise NotFound("edge", edge_id)
            return Edge.from_row(row)

    async def count(self) -> int:
        async with self.database.session() as session:
            return int((await session.execute(select(func.count(EdgeRow.id)))).scalar_one())

    async def _max_edge_weight(self) -> float:
        async with self.database.session() as session:
            heaviest = (await session.execute(select(func.max(EdgeRow.weight)))).scalar_one()
        return float(heaviest or 0.0)

    async def edges_for_chunk(self, chunk_id: int) -> List[Edge]:
        """Every edge touching chunk_id, in either role."""
        async with self.database.session() as session:
            rows = (await session.execute(
                select(EdgeRow)
                .where(or_(EdgeRow.src_chunk_id == chunk_id, EdgeRow.dst_chunk_id == chunk_id))
                .order_by(EdgeRow.id)
            )).scalars()
            return [Edge.from_row(row) for row in rows]

    async def _adjacent(self, chunk_id: int) -> List[Tuple[Chunk, float]]:
        """Traversable (neighbour, edge weight) pairs leaving chunk_id."""
        outgoing = (
            select(EdgeRow.id, EdgeRow.weight, ChunkRow)
            .join(ChunkRow, ChunkRow.id == EdgeRow.dst_chunk_id)
            .where(EdgeRow.src_chunk_id == chunk_id)
        )
        incoming_undirected = (
            select(EdgeRow.id, EdgeRow.weight, ChunkRow)
            .join(ChunkRow, ChunkRow.id == EdgeRow.src_chunk_id)
            .where(EdgeRow.dst_chunk_id == chunk_id, EdgeRow.directed.is_(False))
        )

        async with self.database.session() as session:
            rows = list((await session.execute(outgoing)).all())
            rows += list((await session.execute(incoming_undirected)).all())

        rows.sort(key=lambda r: r[0])
        return [
            (Chunk.from_row(row), float(weight))
            for _, weight, row in rows
            if row.id != chunk_id
        ]

    async def neighbors(
        self,
        chunk_id: int,
        max_depth: int,
        decay: float = 1.0,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[Tuple[Chunk, float, int]]:
        """
        Lazily yield chunks reachable from chunk_id within max_depth hops.

        Each chunk is yielded once, in descending order of its best cumulative
        path weight, as (Chunk, cumulative_path_weight, hop_count). The start
        chunk is not yielded. Each call starts a fresh traversal.

        Args:
            chunk_id: Start chunk
            max_depth: Maximum hop count
            decay: Per-hop decay factor
            timeout: Seconds allowed for all store calls of this traversal

        Raises:
            NotFound: Unknown start chunk.
            RetrievalTimeout: Store calls exceeded timeout.
        """
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        if not decay > 0:
            raise ValueError(f"decay must be > 0, got {decay}")

        deadline = Deadline(timeout)

        async def _load_start() -> Optional[ChunkRow]:
            async with self.database.session() as session:
                return await session.get(ChunkRow, chunk_id)

        start = await with_timeout(_load_start(), deadline.remaining(), "neighbors")
        if start is None:
            raise NotFound("chunk", chunk_id)

        heaviest = await with_timeout(self._max_edge_weight(), deadline.remaining(), "neighbors")
        streaming = heaviest * decay <= 1.0

        frontier: List[Tuple[float, int, int]] = [(-1.0, 0, chunk_id)]
        settled: Dict[int, List[Label]] = {}
        pending: Dict[int, Chunk] = {}
        best: Dict[int, Label] = {}
        emitted = {chunk_id}

        while frontier:
            neg_weight, hops, current = heapq.heappop(frontier)
            weight = -neg_weight
            labels = settled.setdefault(current, [])
            if _dominated(labels, hops, weight):
                continue
            labels.append((hops, weight))

            if streaming:
                if current not in emitted:
                    emitted.add(current)
                    yield pending[current], weight, hops
            elif current != chunk_id:
                best_hops, best_weight = best.get(current, (hops, -1.0))
                if weight > best_weight or (weight == best_weight and hops < best_hops):
                    best[current] = (hops, weight)

            if hops >= max_depth:
                continue

            adjacent = await with_timeout(self._adjacent(current), deadline.remaining(), "neighbors")
            for neighbor, edge_weight in adjacent:
                candidate = weight * edge_weight * decay
                if _dominated(settled.get(neighbor.id, []), hops + 1, candidate):
                    continue
                pending.setdefault(neighbor.id, neighbor)
                heapq.heappush(frontier, (-candidate, hops + 1, neighbor.id))

        ranked = sorted(best.items(), key=lambda item: (-item[1][1], item[1][0], item[0]))
        for node_id, (hops, weight) in ranked:
            yield pending[node_id], weight, hops
