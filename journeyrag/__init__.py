"""
JourneyRAG: graph-augmented retrieval over career journeys
==========================================================

Chunks of profile text with vector embeddings, linked by a weighted
relationship graph, ranked by vector similarity, graph-propagated relevance
and recency, then grouped into profile-level matches.

Quick Start:
    from journeyrag import JourneyGraph, JourneyConfig

    graph = JourneyGraph(JourneyConfig(database_url="sqlite+aiosqlite:///journeyrag.db"))
    await graph.connect()

    await graph.ingest(chunks=[...], edges=[...])
    profiles = await graph.search(query_embedding, limit=5, exclude_user_id=7)

    await graph.close()

Components:
- core: JourneyGraph, JourneyConfig
- storage: ChunkStore, RelationshipGraph, GraphAwareRetriever
- cache: ResultCache
- services: IngestionService, SearchService, ExperienceMatchService
- weights: WeightStore, ScoringConfig
"""

__version__ = "0.1.0"

# Core API
from journeyrag.core import JourneyConfig, JourneyGraph

# Convenience exports
from journeyrag.storage import ChunkStore, GraphAwareRetriever, RelationshipGraph
from journeyrag.cache import ResultCache

__all__ = [
    # Core
    "JourneyGraph",
    "JourneyConfig",
    # Storage
    "ChunkStore",
    "RelationshipGraph",
    "GraphAwareRetriever",
    # Cache
    "ResultCache",
]
