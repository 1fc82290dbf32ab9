"""
JourneyRAG Graph Storage
========================

Weighted relationship graph between chunks.

Example:
    from journeyrag.storage.graph import RelationshipGraph

    graph = RelationshipGraph(database)
    async for chunk, weight, hops in graph.neighbors(chunk_id, max_depth=2):
        ...
"""

from journeyrag.storage.graph.relationship_graph import RelationshipGraph

__all__ = [
    "RelationshipGraph",
]
