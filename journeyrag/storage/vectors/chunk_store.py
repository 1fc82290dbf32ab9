"""
Chunk Store
===========

Durable, append-mostly store of embedded text chunks.

Features:
- Insert with embedding dimension validation (no partial writes)
- Lookup by id, source node or owner
- Cosine similarity search with tenant / owner / recency filters
- Cascade removal of chunks and their edges
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import structlog
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from journeyrag.errors import EmptyQueryEmbedding, InvalidEmbeddingDimension, NotFound
from journeyrag.storage.database import Database
from journeyrag.storage.models import Chunk
from journeyrag.storage.orm import ChunkRow, EdgeRow
from journeyrag.storage.utils import to_naive_utc, utcnow, with_timeout

log = structlog.get_logger()


@dataclass
class SimilarityFilters:
    """
    Filters applied by query_by_similarity.

    Attributes:
        tenant_id: Only chunks of this tenant (None = every tenant)
        exclude_user_id: Drop chunks owned by this user
        since: Only chunks with created_at >= since
        min_similarity: Drop chunks below this cosine similarity
    """
    tenant_id: Optional[str] = None
    exclude_user_id: Optional[int] = None
    since: Optional[datetime] = None
    min_similarity: Optional[float] = None


def normalize(vector: Sequence[float]) -> np.ndarray:
    """
    L2-normalise a vector.

    Raises:
        EmptyQueryEmbedding: If the vector is empty, all-zero or not finite.
    """
    array = np.asarray(vector, dtype=np.float64)
    if array.ndim != 1 or array.size == 0:
        raise EmptyQueryEmbedding("query embedding is empty")
    if not np.all(np.isfinite(array)):
        raise EmptyQueryEmbedding("query embedding contains non-finite values")
    norm = np.linalg.norm(array)
    if norm == 0.0:
        raise EmptyQueryEmbedding("query embedding is all zeros and cannot be normalized")
    return array / norm


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Cosine similarity of a normalised query against each row of matrix.

    Rows with zero norm score 0.
    """
    norms = np.linalg.norm(matrix, axis=1)
    safe = np.where(norms == 0.0, 1.0, norms)
    sims = (matrix @ query) / safe
    return np.where(norms == 0.0, 0.0, sims)


class ChunkStore:
    """
    Store of immutable content chunks with vector embeddings.

    Example:
        store = ChunkStore(database)

        chunk_id = await store.put(Chunk(
            owner_id=7,
            node_id="node-1",
            text="Senior engineer, distributed systems",
            embedding=vector,
            entity_type="job",
        ))

        hits = await store.query_by_similarity(
            query_vector,
            SimilarityFilters(tenant_id="default", exclude_user_id=7),
            k=50,
        )
    """

    def __init__(self, database: Database):
        self.database = database
        self.embedding_dimension = database.config.embedding_dimension
        self.default_tenant = database.config.default_tenant

        log.info(
            "ChunkStore initialized",
            embedding_dimension=self.embedding_dimension,
            default_tenant=self.default_tenant,
        )

    def check_dimension(self, embedding: Sequence[float]) -> None:
        if len(embedding) != self.embedding_dimension:
            raise InvalidEmbeddingDimension(self.embedding_dimension, len(embedding))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def put(self, chunk: Chunk) -> int:
        """
        Insert a chunk.

        Args:
            chunk: Chunk to store; id is ignored, created_at defaults to now.

        Returns:
            The new chunk id

        Raises:
            InvalidEmbeddingDimension: Vector length differs from the deployment.
        """
        self.check_dimension(chunk.embedding)

        async with self.database.session() as session:
            row = self.stage(session, chunk)
            await session.commit()
            chunk_id = row.id

        log.debug("Chunk stored", chunk_id=chunk_id, owner_id=chunk.owner_id, node_id=chunk.node_id)
        return chunk_id

    def stage(self, session: AsyncSession, chunk: Chunk) -> ChunkRow:
        """
        Add a chunk row to an open session without committing.

        The row id is assigned on flush; the caller owns commit / rollback.
        """
        self.check_dimension(chunk.embedding)

        now = utcnow()
        created_at = to_naive_utc(chunk.created_at) if chunk.created_at else now
        row = ChunkRow(
            user_id=chunk.owner_id,
            node_id=chunk.node_id,
            tenant_id=chunk.tenant_id or self.default_tenant,
            chunk_text=chunk.text,
            embedding=[float(x) for x in chunk.embedding],
            node_type=chunk.entity_type,
            meta=dict(chunk.meta or {}),
            created_at=created_at,
            updated_at=now,
        )
        session.add(row)
        return row

    async def create_chunk(
        self,
        owner_id: int,
        text: str,
        embedding: Sequence[float],
        entity_type: str,
        node_id: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
        tenant_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Keyword form of put()."""
        return await self.put(Chunk(
            owner_id=owner_id,
            text=text,
            embedding=list(embedding),
            entity_type=entity_type,
            node_id=node_id,
            meta=dict(meta or {}),
            tenant_id=tenant_id,
            created_at=created_at,
        ))

    async def update_meta(
        self,
        chunk_id: int,
        meta: Dict[str, Any],
        merge: bool = True,
    ) -> Chunk:
        """
        Replace or extend a chunk's meta; bumps updated_at.

        Text and embedding are immutable: re-embedding means a new chunk.
        """
        async with self.database.session() as session:
            row = await session.get(ChunkRow, chunk_id)
            if row is None:
                raise NotFound("chunk", chunk_id)
            row.meta = {**(row.meta or {}), **meta} if merge else dict(meta)
            row.updated_at = utcnow()
            await session.commit()
            return Chunk.from_row(row)

    async def remove_chunks_by_node_id(self, node_id: str) -> int:
        """Delete every chunk of a source node, with their edges. Returns the count."""
        return await self._remove_where(ChunkRow.node_id == node_id, node_id=node_id)

    async def remove_chunks_by_user_id(self, user_id: int) -> int:
        """Delete every chunk of an owner, with their edges. Returns the count."""
        return await self._remove_where(ChunkRow.user_id == user_id, user_id=user_id)

    async def _remove_where(self, condition, **log_context) -> int:
        async with self.database.session() as session:
            removed = await self._stage_removal(session, condition)
            if not removed:
                log.debug("No chunks to remove", **log_context)
                return 0
            await session.commit()

        log.info("Chunks removed", count=removed, **log_context)
        return removed

    async def stage_removal_by_node_id(self, session: AsyncSession, node_id: str) -> int:
        """Delete a node's chunks and their edges inside an open session, without committing."""
        return await self._stage_removal(session, ChunkRow.node_id == node_id)

    async def _stage_removal(self, session: AsyncSession, condition) -> int:
        ids = list((await session.execute(select(ChunkRow.id).where(condition))).scalars())
        if not ids:
            return 0

        await session.execute(
            delete(EdgeRow).where(
                or_(EdgeRow.src_chunk_id.in_(ids), EdgeRow.dst_chunk_id.in_(ids))
            )
        )
        await session.execute(delete(ChunkRow).where(ChunkRow.id.in_(ids)))
        return len(ids)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, chunk_id: int) -> Chunk:
        """
        Fetch one chunk.

        Raises:
            NotFound: Unknown chunk id.
        """
        async with self.database.session() as session:
            row = await session.get(ChunkRow, chunk_id)
            if row is None:
                raise NotFound("chunk", chunk_id)
            return Chunk.from_row(row)

    async def get_many(self, chunk_ids: Iterable[int]) -> Dict[int, Chunk]:
        """Fetch several chunks; unknown ids are absent from the result."""
        ids = list(set(chunk_ids))
        if not ids:
            return {}
        async with self.database.session() as session:
            rows = (await session.execute(select(ChunkRow).where(ChunkRow.id.in_(ids)))).scalars()
            return {row.id: Chunk.from_row(row) for row in rows}

    async def exists(self, chunk_ids: Iterable[int]) -> set:
        """Subset of chunk_ids present in the store."""
        ids = list(set(chunk_ids))
        if not ids:
            return set()
        async with self.database.session() as session:
            result = await session.execute(select(ChunkRow.id).where(ChunkRow.id.in_(ids)))
            return set(result.scalars())

    async def get_chunks_by_node_id(self, node_id: str) -> List[Chunk]:
        async with self.database.session() as session:
            rows = (await session.execute(
                select(ChunkRow).where(ChunkRow.node_id == node_id).order_by(ChunkRow.id)
            )).scalars()
            return [Chunk.from_row(row) for row in rows]

    async def get_chunks_by_user_id(
        self,
        user_id: int,
        tenant_id: Optional[str] = None,
    ) -> List[Chunk]:
        query = select(ChunkRow).where(ChunkRow.user_id == user_id)
        if tenant_id is not None:
            query = query.where(ChunkRow.tenant_id == tenant_id)
        async with self.database.session() as session:
            rows = (await session.execute(query.order_by(ChunkRow.id))).scalars()
            return [Chunk.from_row(row) for row in rows]

    async def count(self, tenant_id: Optional[str] = None) -> int:
        query = select(func.count(ChunkRow.id))
        if tenant_id is not None:
            query = query.where(ChunkRow.tenant_id == tenant_id)
        async with self.database.session() as session:
            return int((await session.execute(query)).scalar_one())

    async def query_by_similarity(
        self,
        embedding: Sequence[float],
        filters: Optional[SimilarityFilters] = None,
        k: int = 50,
        timeout: Optional[float] = None,
    ) -> List[Tuple[Chunk, float]]:
        """
        Top-k chunks by cosine similarity.

        Args:
            embedding: Query vector (deployment dimension)
            filters: Tenant / owner exclusion / recency / threshold filters
            k: Maximum number of results
            timeout: Seconds allowed for the store calls

        Returns:
            List of (Chunk, similarity) sorted by similarity desc, then id asc

        Raises:
            InvalidEmbeddingDimension: Query length differs from the deployment.
            EmptyQueryEmbedding: Query cannot be normalised.
            RetrievalTimeout: Store calls exceeded timeout.
        """
        self.check_dimension(embedding)
        query_vector = normalize(embedding)
        if k <= 0:
            return []
        return await with_timeout(
            self._query_by_similarity(query_vector, filters or SimilarityFilters(), k),
            timeout,
            "query_by_similarity",
        )

    async def _query_by_similarity(
        self,
        query_vector: np.ndarray,
        filters: SimilarityFilters,
        k: int,
    ) -> List[Tuple[Chunk, float]]:
        query = select(ChunkRow.id, ChunkRow.embedding)
        if filters.tenant_id is not None:
            query = query.where(ChunkRow.tenant_id == filters.tenant_id)
        if filters.exclude_user_id is not None:
            query = query.where(ChunkRow.user_id != filters.exclude_user_id)
        if filters.since is not None:
            query = query.where(ChunkRow.created_at >= to_naive_utc(filters.since))

        async with self.database.session() as session:
            candidates = (await session.execute(query)).all()

        if not candidates:
            return []

        ids = np.asarray([row[0] for row in candidates], dtype=np.int64)
        matrix = np.asarray([row[1] for row in candidates], dtype=np.float64)
        sims = cosine_similarities(query_vector, matrix)

        if filters.min_similarity is not None:
            keep = sims >= filters.min_similarity
            ids, sims = ids[keep], sims[keep]

        # Primary key: similarity desc; secondary: id asc
        order = np.lexsort((ids, -sims))[:k]
        top_ids = [int(ids[i]) for i in order]
        top_sims = [float(sims[i]) for i in order]

        chunks = await self.get_many(top_ids)
        results = [
            (chunks[chunk_id], sim)
            for chunk_id, sim in zip(top_ids, top_sims)
            if chunk_id in chunks
        ]

        log.debug("Similarity query", candidates=len(candidates), returned=len(results), k=k)
        return results
