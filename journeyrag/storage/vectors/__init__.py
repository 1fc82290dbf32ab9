"""
JourneyRAG Vector Storage
=========================

Chunk store with cosine similarity search.

Components:
- ChunkStore: durable store of embedded chunks
- SimilarityFilters: tenant / owner / recency / threshold filters
"""

from journeyrag.storage.vectors.chunk_store import (
    ChunkStore,
    SimilarityFilters,
    cosine_similarities,
    normalize,
)

__all__ = [
    "ChunkStore",
    "SimilarityFilters",
    "cosine_similarities",
    "normalize",
]
