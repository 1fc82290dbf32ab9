"""
Graph-Aware Retriever
=====================

Seed retrieval, graph expansion, score fusion and profile aggregation.
"""

from journeyrag.storage.retriever.models import (
    ExpansionResult,
    MatchResult,
    RetrieverConfig,
    ScoredChunk,
    SearchRequest,
)
from journeyrag.storage.retriever.seed import SeedRetriever
from journeyrag.storage.retriever.expansion import GraphExpander, merge_expansions
from journeyrag.storage.retriever.fusion import ScoreFusion, rank_key
from journeyrag.storage.retriever.hybrid import GraphAwareRetriever

__all__ = [
    "ExpansionResult",
    "MatchResult",
    "RetrieverConfig",
    "ScoredChunk",
    "SearchRequest",
    "SeedRetriever",
    "GraphExpander",
    "merge_expansions",
    "ScoreFusion",
    "rank_key",
    "GraphAwareRetriever",
]
