"""
Graph Expander
==============

Propagates seed relevance through the relationship graph.

Every seed starts with path weight 1.0 and its direct similarity. Each seed
is expanded with RelationshipGraph.neighbors (best-first, multiplicative
decay, bounded depth) and the per-seed results are merged with a max-reduce,
so seeds can be expanded in any order or concurrently.
"""

import asyncio
from functools import reduce
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from journeyrag.storage.graph import RelationshipGraph
from journeyrag.storage.models import Chunk
from journeyrag.storage.retriever.models import ExpansionResult, RetrieverConfig
from journeyrag.storage.utils import Deadline

log = structlog.get_logger()

Expansions = Dict[int, ExpansionResult]


def merge_expansions(left: Expansions, right: Expansions) -> Expansions:
    """Keep the winning entry per chunk. Commutative and associative."""
    merged = dict(left)
    for chunk_id, candidate in right.items():
        current = merged.get(chunk_id)
        if current is None or candidate.beats(current):
            merged[chunk_id] = candidate
    return merged


def _clamp(weight: float) -> float:
    return min(max(weight, 0.0), 1.0)


class GraphExpander:
    """
    Computes graph-aware scores for seeds and every chunk reachable from them.

    Example:
        expander = GraphExpander(graph, RetrieverConfig(max_depth=2, decay=0.5))
        expansions = await expander.expand(seeds, tenant_id="default", exclude_user_id=7)
        expansions[chunk_id].graph_aware_score
    """

    def __init__(self, graph: RelationshipGraph, config: Optional[RetrieverConfig] = None):
        self.graph = graph
        self.config = config or RetrieverConfig()

    def _is_target(
        self,
        chunk: Chunk,
        tenant_id: Optional[str],
        exclude_user_id: Optional[int],
    ) -> bool:
        if exclude_user_id is not None and chunk.owner_id == exclude_user_id:
            return False
        if tenant_id is not None and chunk.tenant_id != tenant_id:
            return False
        return True

    async def expand_seed(
        self,
        seed: Chunk,
        similarity: float,
        tenant_id: Optional[str] = None,
        exclude_user_id: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> Expansions:
        """Reachable chunks of one seed (the seed itself excluded)."""
        reached: Expansions = {}
        async for chunk, path_weight, hops in self.graph.neighbors(
            seed.id,
            max_depth=self.config.max_depth,
            decay=self.config.decay,
            timeout=timeout,
        ):
            # Filtered chunks are still traversed through by neighbors()
            if not self._is_target(chunk, tenant_id, exclude_user_id):
                continue
            reached[chunk.id] = ExpansionResult(
                chunk=chunk,
                best_seed_sim=similarity,
                best_path_weight=_clamp(path_weight),
                hop_count=hops,
                seed_chunk_id=seed.id,
            )
        return reached

    async def expand(
        self,
        seeds: Iterable[Tuple[Chunk, float]],
        tenant_id: Optional[str] = None,
        exclude_user_id: Optional[int] = None,
    ) -> Expansions:
        """
        Graph-aware scores for the seeds and their neighbourhoods.

        Args:
            seeds: (Chunk, direct_similarity) pairs
            tenant_id: Reachable chunks must belong to this tenant
            exclude_user_id: Reachable chunks must not be owned by this user

        Returns:
            Dict chunk_id -> ExpansionResult. Seeds keep path weight 1.0 and
            their own similarity.

        Raises:
            RetrievalTimeout: Traversal store calls exceeded the configured timeout.
        """
        seeds = list(seeds)
        own = {
            chunk.id: ExpansionResult(
                chunk=chunk,
                best_seed_sim=similarity,
                best_path_weight=1.0,
                hop_count=0,
                seed_chunk_id=chunk.id,
            )
            for chunk, similarity in seeds
        }

        if not seeds or not self.config.enable_graph_expansion or self.config.max_depth == 0:
            return own

        deadline = Deadline(self.config.timeout_seconds)

        if self.config.expansion_concurrency == 1:
            partials: List[Expansions] = []
            for chunk, similarity in seeds:
                partials.append(await self.expand_seed(
                    chunk, similarity, tenant_id, exclude_user_id, deadline.remaining()
                ))
        else:
            semaphore = asyncio.Semaphore(self.config.expansion_concurrency)

            async def _bounded(chunk: Chunk, similarity: float) -> Expansions:
                async with semaphore:
                    return await self.expand_seed(
                        chunk, similarity, tenant_id, exclude_user_id, deadline.remaining()
                    )

            partials = list(await asyncio.gather(
                *(_bounded(chunk, similarity) for chunk, similarity in seeds)
            ))

        merged = reduce(merge_expansions, partials, {})
        # A seed's own entry is authoritative, whatever reached it
        merged.update(own)

        log.debug(
            "Graph expansion complete",
            seeds=len(seeds),
            reachable=len(merged) - len(own),
            max_depth=self.config.max_depth,
            decay=self.config.decay,
        )
        return merged
