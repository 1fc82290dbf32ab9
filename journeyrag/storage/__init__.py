"""
Storage Layer
=============

Chunk store, relationship graph and the graph-aware retriever, sharing one
async SQLAlchemy database.

Components:
- vectors/: ChunkStore with cosine similarity search
- graph/: RelationshipGraph with best-first neighbour traversal
- retriever/: GraphAwareRetriever for hybrid search

Scoring:
    query embedding
          |
          v
    [ChunkStore] ---- seeds (direct_similarity) ----+
          |                                         |
          v                                         |
    [RelationshipGraph] -- graph_aware_score        |
          |                                         |
          +--------------------+--------------------+
                               |
                               v
        final = w_sim * sim + w_graph * graph + w_recency * recency
"""

from journeyrag.storage.database import Database, DatabaseConfig
from journeyrag.storage.models import Chunk, Edge, RelationType
from journeyrag.storage.vectors import ChunkStore, SimilarityFilters
from journeyrag.storage.graph import RelationshipGraph
from journeyrag.storage.retriever import (
    GraphAwareRetriever,
    MatchResult,
    RetrieverConfig,
    ScoredChunk,
    SearchRequest,
)

__all__ = [
    # Database
    "Database",
    "DatabaseConfig",
    # Models
    "Chunk",
    "Edge",
    "RelationType",
    # Chunks
    "ChunkStore",
    "SimilarityFilters",
    # Graph
    "RelationshipGraph",
    # Retriever
    "GraphAwareRetriever",
    "MatchResult",
    "RetrieverConfig",
    "ScoredChunk",
    "SearchRequest",
]
