"""
JourneyRAG Weight Management
============================

Central management of the tunable constants of the retrieval engine:
- Fusion weights (similarity / graph / recency) and recency half-life
- Graph expansion depth and decay
- Seed pool size, similarity threshold and store timeout
- Ranking caps and result cache settings

Example:
    >>> from journeyrag.weights import get_weight_store
    >>>
    >>> store = get_weight_store()
    >>> config = store.get_config()
    >>> print(config.expansion.decay)
    0.5
"""

from journeyrag.weights.config import (
    WeightCategory,
    FusionWeights,
    ExpansionSettings,
    SeedSettings,
    RankingSettings,
    CacheSettings,
    ScoringConfig,
)
from journeyrag.weights.store import (
    WeightStore,
    get_weight_store,
)

__all__ = [
    "WeightCategory",
    "FusionWeights",
    "ExpansionSettings",
    "SeedSettings",
    "RankingSettings",
    "CacheSettings",
    "ScoringConfig",
    "WeightStore",
    "get_weight_store",
]
