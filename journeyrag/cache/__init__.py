"""
Result cache with TTL and single-flight recomputation.
"""

from journeyrag.cache.result_cache import (
    CacheEntry,
    CacheKey,
    CachePolicy,
    CacheState,
    ResultCache,
)

__all__ = [
    "CacheEntry",
    "CacheKey",
    "CachePolicy",
    "CacheState",
    "ResultCache",
]
