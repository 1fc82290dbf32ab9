"""
Score Fusion and Ranking
========================

final_score = w_sim * direct_similarity + w_graph * graph_aware_score + w_recency * recency

Chunks are ranked by final score desc, created_at desc, id asc, then grouped
into one MatchResult per owner (profile score = best chunk score).
"""

import math
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from journeyrag.storage.models import Chunk
from journeyrag.storage.retriever.models import (
    ExpansionResult,
    MatchResult,
    RetrieverConfig,
    ScoredChunk,
)
from journeyrag.storage.utils import to_naive_utc, utcnow

log = structlog.get_logger()

_EPOCH = datetime(1970, 1, 1)

WHY_SIMILARITY = "Strong semantic match with your search"
WHY_GRAPH = "Similar skills and overlapping timeline"
WHY_RECENCY = "Recently active in a related area"


def rank_key(scored: ScoredChunk) -> Tuple[float, float, int]:
    """Sort key: final score desc, created_at desc, id asc."""
    created = scored.chunk.created_at
    created_ts = (to_naive_utc(created) - _EPOCH).total_seconds() if created else float("-inf")
    return (-scored.final_score, -created_ts, scored.chunk.id)


class ScoreFusion:
    """
    Combines similarity, graph and recency signals and builds profile matches.

    Example:
        fusion = ScoreFusion(RetrieverConfig(w_similarity=0.6, w_graph=0.3, w_recency=0.1))
        ranked = fusion.fuse(seeds, expansions)
        profiles = fusion.aggregate(ranked, limit=20)
    """

    def __init__(self, config: Optional[RetrieverConfig] = None):
        self.config = config or RetrieverConfig()

    def recency_score(self, created_at: Optional[datetime], now: Optional[datetime] = None) -> float:
        """exp(-age_days / half_life_days); future timestamps count as age 0."""
        if created_at is None:
            return 0.0
        now = to_naive_utc(now) if now else utcnow()
        age_days = max(0.0, (now - to_naive_utc(created_at)).total_seconds() / 86400.0)
        return math.exp(-age_days / self.config.recency_half_life_days)

    def final_score(self, direct: float, graph: float, recency: float) -> float:
        return (
            self.config.w_similarity * direct
            + self.config.w_graph * graph
            + self.config.w_recency * recency
        )

    def why_matched(self, direct: float, graph: float, recency: float) -> str:
        """Reason for the dominant weighted signal (ties: similarity, graph, recency)."""
        contributions = [
            (self.config.w_similarity * direct, WHY_SIMILARITY),
            (self.config.w_graph * graph, WHY_GRAPH),
            (self.config.w_recency * recency, WHY_RECENCY),
        ]
        best_value, best_reason = contributions[0]
        for value, reason in contributions[1:]:
            if value > best_value:
                best_value, best_reason = value, reason
        return best_reason

    def score_chunk(
        self,
        chunk: Chunk,
        direct: float,
        graph: float,
        hop_count: int,
        now: Optional[datetime] = None,
    ) -> ScoredChunk:
        recency = self.recency_score(chunk.created_at, now)
        return ScoredChunk(
            chunk=chunk,
            direct_similarity=direct,
            graph_aware_score=graph,
            recency_score=recency,
            final_score=self.final_score(direct, graph, recency),
            hop_count=hop_count,
            why_matched=self.why_matched(direct, graph, recency),
        )

    def fuse(
        self,
        seeds: Iterable[Tuple[Chunk, float]],
        expansions: Dict[int, ExpansionResult],
        now: Optional[datetime] = None,
    ) -> List[ScoredChunk]:
        """
        Score every seed and reachable chunk once, ranked.

        Args:
            seeds: (Chunk, direct_similarity) pairs
            expansions: GraphExpander output (seeds included)
            now: Reference time for recency

        Returns:
            ScoredChunk list sorted by rank_key
        """
        direct = {chunk.id: similarity for chunk, similarity in seeds}
        chunks: Dict[int, Chunk] = {chunk.id: chunk for chunk, _ in seeds}

        scored = []
        for chunk_id in set(direct) | set(expansions):
            expansion = expansions.get(chunk_id)
            chunk = expansion.chunk if expansion else chunks[chunk_id]
            scored.append(self.score_chunk(
                chunk,
                direct=direct.get(chunk_id, 0.0),
                graph=expansion.graph_aware_score if expansion else direct[chunk_id],
                hop_count=expansion.hop_count if expansion else 0,
                now=now,
            ))

        scored.sort(key=rank_key)
        return scored

    def aggregate(self, ranked: List[ScoredChunk], limit: int) -> List[MatchResult]:
        """
        Group ranked chunks into profiles.

        Profile score is the best chunk score; matched nodes keep rank order,
        one chunk per source node, capped at max_matched_nodes. Profiles are
        ordered by their best chunk and truncated to limit.
        """
        profiles: Dict[int, MatchResult] = {}
        seen_nodes: Dict[int, set] = {}

        # ranked is already ordered, so insertion order is profile order
        for scored in ranked:
            owner_id = scored.chunk.owner_id
            profile = profiles.get(owner_id)
            if profile is None:
                profile = profiles[owner_id] = MatchResult(
                    user_id=owner_id,
                    score=scored.final_score,
                    why_matched=scored.why_matched,
                )
                seen_nodes[owner_id] = set()

            if len(profile.matched_nodes) >= self.config.max_matched_nodes:
                continue
            node_key = scored.chunk.node_id if scored.chunk.node_id is not None else ("chunk", scored.chunk.id)
            if node_key in seen_nodes[owner_id]:
                continue
            seen_nodes[owner_id].add(node_key)
            profile.matched_nodes.append(scored)

        results = list(profiles.values())[:limit]
        log.debug("Profiles aggregated", chunks=len(ranked), profiles=len(profiles), returned=len(results))
        return results
