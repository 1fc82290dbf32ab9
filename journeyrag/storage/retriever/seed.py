"""
Seed Retriever
==============

Vector-similarity seeding: the top candidates that start graph expansion.
"""

from typing import List, Optional, Tuple

import numpy as np
import structlog

from journeyrag.errors import EmptyQueryEmbedding
from journeyrag.storage.models import Chunk
from journeyrag.storage.retriever.models import RetrieverConfig, SearchRequest
from journeyrag.storage.vectors import ChunkStore, SimilarityFilters

log = structlog.get_logger()


class SeedRetriever:
    """
    Selects seeds by direct similarity.

    The pool size is independent from the request limit: expansion and
    profile aggregation need more candidates than the profiles returned.
    """

    def __init__(self, chunk_store: ChunkStore, config: Optional[RetrieverConfig] = None):
        self.chunk_store = chunk_store
        self.config = config or RetrieverConfig()

    def _validate_embedding(self, embedding: Optional[List[float]]) -> None:
        if embedding is None or len(embedding) == 0:
            raise EmptyQueryEmbedding("query embedding is missing")
        array = np.asarray(embedding, dtype=np.float64)
        if not np.all(np.isfinite(array)) or not np.any(array):
            raise EmptyQueryEmbedding("query embedding is all zeros and cannot be normalized")

    def filters_for(self, request: SearchRequest) -> SimilarityFilters:
        threshold = request.similarity_threshold
        if threshold is None:
            threshold = self.config.similarity_threshold
        return SimilarityFilters(
            tenant_id=request.tenant_id or self.chunk_store.default_tenant,
            exclude_user_id=request.exclude_user_id,
            since=request.since,
            # Anti-similar chunks never seed, even without a threshold
            min_similarity=max(threshold, 0.0),
        )

    async def retrieve(self, request: SearchRequest) -> List[Tuple[Chunk, float]]:
        """
        Seeds for a request.

        Returns:
            At most seed_pool_size (Chunk, direct_similarity) pairs, best first

        Raises:
            EmptyQueryEmbedding: Missing or all-zero query embedding.
            RetrievalTimeout: Store call exceeded the configured timeout.
        """
        self._validate_embedding(request.query_embedding)

        seeds = await self.chunk_store.query_by_similarity(
            request.query_embedding,
            self.filters_for(request),
            k=self.config.seed_pool_size,
            timeout=self.config.timeout_seconds,
        )

        log.debug(
            "Seeds retrieved",
            seeds=len(seeds),
            pool_size=self.config.seed_pool_size,
            top_similarity=round(seeds[0][1], 4) if seeds else None,
        )
        return seeds
