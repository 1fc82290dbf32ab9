"""
GraphAwareRetriever Models
==========================

Dataclasses for requests, intermediate scores, results and configuration.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from journeyrag.storage.models import Chunk
from journeyrag.weights.config import ScoringConfig


@dataclass
class SearchRequest:
    """
    One retrieval request. Not persisted.

    Attributes:
        query_embedding: Query vector
        query_text: Original query text (for logging and enrichment)
        limit: Maximum number of profiles returned [1-100]
        tenant_id: Tenant filter (None = store default tenant)
        requesting_user_id: Used for permission filtering, never for scoring
        exclude_user_id: Owner whose chunks never seed nor are reached
        since: Lower bound on seed created_at
        similarity_threshold: Minimum direct similarity of seeds [0-1]
    """
    query_embedding: Optional[List[float]]
    query_text: str = ""
    limit: int = 20
    tenant_id: Optional[str] = None
    requesting_user_id: Optional[int] = None
    exclude_user_id: Optional[int] = None
    since: Optional[datetime] = None
    similarity_threshold: Optional[float] = None

    def __post_init__(self):
        if not 1 <= self.limit <= 100:
            raise ValueError(f"limit must be in [1, 100], got {self.limit}")
        if self.similarity_threshold is not None and not 0 <= self.similarity_threshold <= 1:
            raise ValueError(
                f"similarity_threshold must be in [0, 1], got {self.similarity_threshold}"
            )


@dataclass
class ExpansionResult:
    """
    Graph-aware relevance of one reachable chunk.

    graph_aware_score = best_seed_sim * best_path_weight
    """
    chunk: Chunk
    best_seed_sim: float
    best_path_weight: float
    hop_count: int
    seed_chunk_id: int

    @property
    def graph_aware_score(self) -> float:
        return self.best_seed_sim * self.best_path_weight

    def rank_key(self):
        return (
            self.graph_aware_score,
            self.best_path_weight,
            self.best_seed_sim,
            -self.seed_chunk_id,
        )

    def beats(self, other: "ExpansionResult") -> bool:
        """
        Higher graph-aware score wins; ties go to the higher path weight,
        then the higher seed similarity, then the lower seed id.
        """
        return self.rank_key() > other.rank_key()

    def __repr__(self) -> str:
        return (
            f"<ExpansionResult(chunk={self.chunk.id}, seed={self.seed_chunk_id}, "
            f"path_w={self.best_path_weight:.3f}, seed_sim={self.best_seed_sim:.3f}, "
            f"hops={self.hop_count})>"
        )


@dataclass
class ScoredChunk:
    """
    Chunk with fused score.

    Attributes:
        direct_similarity: Cosine similarity when the chunk is a seed, else 0
        graph_aware_score: From graph expansion
        recency_score: exp(-age_days / half_life_days)
        final_score: Weighted sum of the three signals
        why_matched: Reason derived from the dominant signal
    """
    chunk: Chunk
    direct_similarity: float
    graph_aware_score: float
    recency_score: float
    final_score: float
    hop_count: int = 0
    why_matched: str = ""

    @property
    def is_seed(self) -> bool:
        return self.hop_count == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunkId": self.chunk.id,
            "nodeId": self.chunk.node_id,
            "type": self.chunk.entity_type,
            "text": self.chunk.text,
            "meta": self.chunk.meta,
            "score": self.final_score,
            "directSimilarity": self.direct_similarity,
            "graphAwareScore": self.graph_aware_score,
            "recencyScore": self.recency_score,
            "whyMatched": self.why_matched,
        }

    def __repr__(self) -> str:
        return (
            f"<ScoredChunk(id={self.chunk.id}, final={self.final_score:.3f}, "
            f"sim={self.direct_similarity:.3f}, graph={self.graph_aware_score:.3f}, "
            f"recency={self.recency_score:.3f})>"
        )


@dataclass
class MatchResult:
    """
    Profile-level match: one owner's contributing chunks.

    The profile score is the maximum final score of its chunks.
    """
    user_id: int
    score: float
    matched_nodes: List[ScoredChunk] = field(default_factory=list)
    why_matched: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "score": self.score,
            "whyMatched": self.why_matched,
            "matchedNodes": [node.to_dict() for node in self.matched_nodes],
        }

    def __repr__(self) -> str:
        return (
            f"<MatchResult(user_id={self.user_id}, score={self.score:.3f}, "
            f"nodes={len(self.matched_nodes)})>"
        )


@dataclass
class RetrieverConfig:
    """
    Configuration for GraphAwareRetriever.

    Attributes:
        seed_pool_size: Seeds taken from vector search (independent of limit)
        similarity_threshold: Default minimum seed similarity
        max_depth: Maximum expansion hops (0 = seeds only)
        decay: Per-hop decay factor (lambda)
        enable_graph_expansion: Enable/disable expansion (for A/B testing)
        expansion_concurrency: Seeds expanded concurrently
        w_similarity / w_graph / w_recency: Fusion weights
        recency_half_life_days: Recency decay constant
        max_matched_nodes: Chunks kept per profile
        timeout_seconds: Budget for the store calls of each stage
    """
    seed_pool_size: int = 50
    similarity_threshold: float = 0.0
    max_depth: int = 2
    decay: float = 0.5
    enable_graph_expansion: bool = True
    expansion_concurrency: int = 1
    w_similarity: float = 0.6
    w_graph: float = 0.3
    w_recency: float = 0.1
    recency_half_life_days: float = 90.0
    max_matched_nodes: int = 5
    timeout_seconds: Optional[float] = 5.0

    def __post_init__(self):
        """Validate configuration values."""
        if self.seed_pool_size < 1:
            raise ValueError(f"seed_pool_size must be >= 1, got {self.seed_pool_size}")
        if not 0 <= self.similarity_threshold <= 1:
            raise ValueError(f"similarity_threshold must be in [0, 1], got {self.similarity_threshold}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")
        if not 0 < self.decay <= 1:
            raise ValueError(f"decay must be in (0, 1], got {self.decay}")
        if self.expansion_concurrency < 1:
            raise ValueError(f"expansion_concurrency must be >= 1, got {self.expansion_concurrency}")
        for name in ("w_similarity", "w_graph", "w_recency"):
            value = getattr(self, name)
            if value < 0 or not math.isfinite(value):
                raise ValueError(f"{name} must be a finite value >= 0, got {value}")
        if not self.recency_half_life_days > 0:
            raise ValueError(f"recency_half_life_days must be > 0, got {self.recency_half_life_days}")
        if self.max_matched_nodes < 1:
            raise ValueError(f"max_matched_nodes must be >= 1, got {self.max_matched_nodes}")
        if self.timeout_seconds is not None and not self.timeout_seconds > 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")

    @classmethod
    def from_scoring_config(cls, config: ScoringConfig, **overrides) -> "RetrieverConfig":
        """Build from the WeightStore configuration."""
        values = dict(
            seed_pool_size=config.seed.seed_pool_size,
            similarity_threshold=config.seed.similarity_threshold,
            timeout_seconds=config.seed.timeout_seconds,
            max_depth=config.expansion.max_depth,
            decay=config.expansion.decay,
            enable_graph_expansion=config.expansion.enabled,
            w_similarity=config.fusion.similarity,
            w_graph=config.fusion.graph,
            w_recency=config.fusion.recency,
            recency_half_life_days=config.fusion.recency_half_life_days,
            max_matched_nodes=config.ranking.max_matched_nodes,
        )
        values.update(overrides)
        return cls(**values)
