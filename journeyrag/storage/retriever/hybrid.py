"""
GraphAwareRetriever
===================

Hybrid retrieval combining vector similarity, graph propagation and recency.

Core algorithm:
1. Seed retrieval by cosine similarity (seed pool independent of limit)
2. Best-first graph expansion from the seeds (multiplicative decay per hop)
3. Score fusion: w_sim * similarity + w_graph * graph_aware + w_recency * recency
4. Aggregation into profile-level matches, truncated to limit
5. Permission post-filter (drop, never substitute) and optional enrichment
"""

from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

import structlog

from journeyrag.errors import PermissionDenied
from journeyrag.storage.graph import RelationshipGraph
from journeyrag.storage.retriever.expansion import GraphExpander
from journeyrag.storage.retriever.fusion import ScoreFusion, rank_key
from journeyrag.storage.retriever.models import (
    MatchResult,
    RetrieverConfig,
    ScoredChunk,
    SearchRequest,
)
from journeyrag.storage.retriever.seed import SeedRetriever
from journeyrag.storage.utils import utcnow
from journeyrag.storage.vectors import ChunkStore

if TYPE_CHECKING:
    from journeyrag.services.interfaces import MatchEnricher, PermissionEvaluator

log = structlog.get_logger()


class GraphAwareRetriever:
    """
    Hybrid retriever over ChunkStore and RelationshipGraph.

    Flow:
        SearchRequest -> SeedRetriever (vector similarity)
                             |
                       GraphExpander (neighbors, decay, max_depth)
                             |
                       ScoreFusion (final score, ranking)
                             |
                       Profiles (max score per owner, limit)
                             |
                       Permission filter -> Enricher

    Example:
        retriever = GraphAwareRetriever(
            chunk_store=ChunkStore(db),
            graph=RelationshipGraph(db),
            permission_evaluator=evaluator,
        )
        profiles = await retriever.retrieve(SearchRequest(
            query_embedding=vector,
            exclude_user_id=7,
            requesting_user_id=7,
        ))
    """

    def __init__(
        self,
        chunk_store: ChunkStore,
        graph: RelationshipGraph,
        config: Optional[RetrieverConfig] = None,
        permission_evaluator: Optional["PermissionEvaluator"] = None,
        enricher: Optional["MatchEnricher"] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            chunk_store: Chunk store (seeds)
            graph: Relationship graph (expansion)
            config: Retriever configuration (default: RetrieverConfig())
            permission_evaluator: can_view port; None disables filtering
            enricher: Optional rewriter of why_matched strings
            clock: Returns "now" for recency scoring (default: naive UTC now)
        """
        self.chunk_store = chunk_store
        self.graph = graph
        self.config = config or RetrieverConfig()
        self.permission_evaluator = permission_evaluator
        self.enricher = enricher
        self.clock = clock or utcnow

        self.seed_retriever = SeedRetriever(chunk_store, self.config)
        self.expander = GraphExpander(graph, self.config)
        self.fusion = ScoreFusion(self.config)

        log.info(
            f"GraphAwareRetriever initialized - "
            f"seed_pool={self.config.seed_pool_size}, "
            f"max_depth={self.config.max_depth}, decay={self.config.decay}, "
            f"weights=({self.config.w_similarity}, {self.config.w_graph}, {self.config.w_recency})"
        )

    async def retrieve(self, request: SearchRequest) -> List[MatchResult]:
        """
        Profile-level matches for a request.

        Returns:
            At most request.limit MatchResult, best first. Every returned
            node passed the permission check.

        Raises:
            EmptyQueryEmbedding: Missing or all-zero query embedding.
            InvalidEmbeddingDimension: Query length differs from the deployment.
            RetrievalTimeout: A store call exceeded the configured timeout.
        """
        tenant_id = request.tenant_id or self.chunk_store.default_tenant

        seeds = await self.seed_retriever.retrieve(request)
        expansions = await self.expander.expand(
            seeds,
            tenant_id=tenant_id,
            exclude_user_id=request.exclude_user_id,
        )
        ranked = self.fusion.fuse(seeds, expansions, now=self.clock())
        profiles = self.fusion.aggregate(ranked, request.limit)

        profiles = await self._filter_permissions(profiles, request.requesting_user_id)

        if self.enricher is not None and profiles:
            profiles = await self.enricher.enrich(request.query_text, profiles)

        log.info(
            "retrieve() complete",
            seeds=len(seeds),
            scored_chunks=len(ranked),
            profiles=len(profiles),
            limit=request.limit,
        )
        return profiles

    async def _can_view(
        self,
        requesting_user_id: int,
        scored: ScoredChunk,
        decisions: Dict[str, bool],
    ) -> bool:
        chunk = scored.chunk
        if chunk.owner_id == requesting_user_id or chunk.node_id is None:
            return True
        if chunk.node_id in decisions:
            return decisions[chunk.node_id]

        try:
            allowed = bool(await self.permission_evaluator.can_view(requesting_user_id, chunk.node_id))
        except PermissionDenied as exc:
            log.warning(
                "Permission evaluator denied node",
                node_id=chunk.node_id,
                requesting_user_id=requesting_user_id,
                detail=str(exc),
            )
            allowed = False

        decisions[chunk.node_id] = allowed
        return allowed

    async def _filter_permissions(
        self,
        profiles: List[MatchResult],
        requesting_user_id: Optional[int],
    ) -> List[MatchResult]:
        """
        Drop nodes the requester may not view.

        Profiles left without nodes are dropped; the remaining profiles are
        rescored from their visible nodes and re-sorted.
        """
        if self.permission_evaluator is None or requesting_user_id is None:
            return profiles

        decisions: Dict[str, bool] = {}
        visible_profiles = []
        dropped_nodes = 0

        for profile in profiles:
            visible = [
                node for node in profile.matched_nodes
                if await self._can_view(requesting_user_id, node, decisions)
            ]
            dropped_nodes += len(profile.matched_nodes) - len(visible)
            if not visible:
                continue
            visible_profiles.append(MatchResult(
                user_id=profile.user_id,
                score=visible[0].final_score,
                matched_nodes=visible,
                why_matched=visible[0].why_matched,
            ))

        visible_profiles.sort(key=lambda p: rank_key(p.matched_nodes[0]))

        if dropped_nodes:
            log.debug(
                "Permission filter applied",
                dropped_nodes=dropped_nodes,
                dropped_profiles=len(profiles) - len(visible_profiles),
            )
        return visible_profiles
