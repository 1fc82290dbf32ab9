"""
Scoring Configuration Models
============================

Pydantic models for every tunable constant of the retrieval engine:
score fusion weights, graph expansion parameters, seed retrieval settings,
ranking caps and result cache settings.

Values can be:
- Loaded from YAML (default)
- Overridden at runtime (without restart)
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class WeightCategory(str, Enum):
    """Categories of tunable values."""
    FUSION = "fusion"
    EXPANSION = "expansion"
    SEED = "seed"
    RANKING = "ranking"
    CACHE = "cache"


class FusionWeights(BaseModel):
    """
    Weights for the final score.

    Formula: final = similarity * direct + graph * graph_aware + recency * recency_score

    The weights are not required to sum to 1.
    """
    similarity: float = Field(default=0.6, ge=0.0)
    graph: float = Field(default=0.3, ge=0.0)
    recency: float = Field(default=0.1, ge=0.0)
    recency_half_life_days: float = Field(default=90.0, gt=0.0)


class ExpansionSettings(BaseModel):
    """
    Graph expansion parameters.

    Attributes:
        max_depth: Maximum hops from a seed (0 disables expansion)
        decay: Per-hop decay factor (lambda)
        enabled: Enable/disable graph expansion (for A/B testing)
    """
    max_depth: int = Field(default=2, ge=0, le=6)
    decay: float = Field(default=0.5, gt=0.0, le=1.0)
    enabled: bool = Field(default=True)


class SeedSettings(BaseModel):
    """Seed retrieval parameters."""
    seed_pool_size: int = Field(default=50, ge=1, le=1000)
    similarity_threshold: float = Field(default=0.0, ge=0.0, le=1.0)
    timeout_seconds: float = Field(default=5.0, gt=0.0)


class RankingSettings(BaseModel):
    """Profile aggregation parameters."""
    max_matched_nodes: int = Field(default=5, ge=1, le=50)
    default_limit: int = Field(default=20, ge=1, le=100)


class CacheSettings(BaseModel):
    """
    Result cache parameters.

    Attributes:
        ttl_seconds: Freshness window of a cached payload
        policy: "serve_stale" (stale-while-revalidate) or "block"
        experience_match_limit: Profiles returned per experience node
        experience_match_threshold: Similarity threshold for experience matches
    """
    ttl_seconds: float = Field(default=300.0, gt=0.0)
    policy: str = Field(default="serve_stale")
    experience_match_limit: int = Field(default=3, ge=1, le=100)
    experience_match_threshold: float = Field(default=0.3, ge=0.0, le=1.0)

    @field_validator("policy")
    @classmethod
    def policy_must_be_known(cls, v: str) -> str:
        if v not in ("serve_stale", "block"):
            raise ValueError(f"policy must be 'serve_stale' or 'block', got {v!r}")
        return v


class ScoringConfig(BaseModel):
    """
    Complete scoring configuration.

    Groups all categories; versioned so that cached payloads can be traced
    back to the configuration that produced them.
    """
    version: str = Field(default="1.0")

    fusion: FusionWeights = Field(default_factory=FusionWeights)
    expansion: ExpansionSettings = Field(default_factory=ExpansionSettings)
    seed: SeedSettings = Field(default_factory=SeedSettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    created_at: Optional[str] = Field(default=None)
    updated_at: Optional[str] = Field(default=None)

    def get_category(self, category: WeightCategory) -> BaseModel:
        """Returns the sub-model for a category."""
        return getattr(self, category.value)
