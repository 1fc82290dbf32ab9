"""
Result Cache
============

TTL cache of computed results with single-flight recomputation.

Per key (subject id + normalised query):

    ABSENT -> FRESH -> STALE -> RECOMPUTING -> FRESH

- FRESH while now - last_updated < ttl; served directly.
- STALE entries are served under SERVE_STALE while a background recompute
  runs (stale-while-revalidate); under BLOCK the caller waits for it.
- force_refresh sends FRESH/STALE straight to RECOMPUTING.
- At most one recompute runs per key. It is an asyncio.Task awaited through
  asyncio.shield, so a cancelled caller never cancels it.
- A failed recompute leaves the entry as it was; the error reaches the
  caller that triggered it.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

import structlog

from journeyrag.storage.utils import utcnow

log = structlog.get_logger()

T = TypeVar("T")
CacheKey = Tuple[str, str]


class CacheState(str, Enum):
    ABSENT = "absent"
    FRESH = "fresh"
    STALE = "stale"
    RECOMPUTING = "recomputing"


class CachePolicy(str, Enum):
    """Behaviour of requests arriving while a key is recomputing."""
    SERVE_STALE = "serve_stale"
    BLOCK = "block"


@dataclass
class CacheEntry(Generic[T]):
    key: CacheKey
    value: T
    last_updated: datetime
    ttl_seconds: float

    def age_seconds(self, now: datetime) -> float:
        return (now - self.last_updated).total_seconds()

    def is_fresh(self, now: datetime) -> bool:
        return self.age_seconds(now) < self.ttl_seconds


class ResultCache:
    """
    In-process result cache shared by concurrent requests.

    Example:
        cache = ResultCache(ttl_seconds=300)
        key = ResultCache.make_key(node_id, query)

        entry = await cache.get_or_compute(key, lambda: compute_matches(node_id))
        entry.value, entry.last_updated
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        policy: CachePolicy = CachePolicy.SERVE_STALE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not ttl_seconds > 0:
            raise ValueError(f"ttl_seconds must be > 0, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self.policy = CachePolicy(policy)
        self.clock = clock or utcnow

        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._inflight: Dict[CacheKey, "asyncio.Task[CacheEntry]"] = {}
        self._generations: Dict[CacheKey, int] = {}

        log.info("ResultCache initialized", ttl_seconds=ttl_seconds, policy=self.policy.value)

    @staticmethod
    def make_key(subject_id: Hashable, query: str = "") -> CacheKey:
        """Key from a subject id and a case/whitespace-normalised query."""
        return (str(subject_id), " ".join((query or "").lower().split()))

    # ========================================================================
    # Inspection
    # ========================================================================

    def state(self, key: CacheKey) -> CacheState:
        if key in self._inflight:
            return CacheState.RECOMPUTING
        entry = self._entries.get(key)
        if entry is None:
            return CacheState.ABSENT
        return CacheState.FRESH if entry.is_fresh(self.clock()) else CacheState.STALE

    def peek(self, key: CacheKey) -> Optional[CacheEntry]:
        """Current entry, fresh or stale, without triggering anything."""
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)

    # ========================================================================
    # Lookup / Recompute
    # ========================================================================

    async def get_or_compute(
        self,
        key: CacheKey,
        compute: Callable[[], Awaitable[T]],
        force_refresh: bool = False,
    ) -> CacheEntry:
        """
        Cached entry for key, computing it when needed.

        Args:
            key: Cache key (see make_key)
            compute: Zero-argument coroutine function producing the value
            force_refresh: Ignore a FRESH/STALE entry and recompute

        Returns:
            CacheEntry (possibly stale under SERVE_STALE)

        Raises:
            Whatever compute raises, to the caller that triggered it (and to
            waiters that have no previous value to fall back on).
        """
        entry = self._entries.get(key)

        if entry is not None and not force_refresh and entry.is_fresh(self.clock()):
            log.debug("Cache hit", key=key, state=CacheState.FRESH.value)
            return entry

        inflight = self._inflight.get(key)
        if inflight is not None:
            if entry is not None and not force_refresh and self.policy is CachePolicy.SERVE_STALE:
                log.debug("Serving stale entry during recompute", key=key)
                return entry
            try:
                return await asyncio.shield(inflight)
            except Exception:
                if entry is not None:
                    return entry
                raise

        task = self._start_recompute(key, compute)

        if entry is not None and not force_refresh and self.policy is CachePolicy.SERVE_STALE:
            log.debug("Serving stale entry, recompute scheduled", key=key)
            return entry

        return await asyncio.shield(task)

    def _start_recompute(self, key: CacheKey, compute: Callable[[], Awaitable[Any]]) -> "asyncio.Task[CacheEntry]":
        # Runs without awaiting, so the in-flight marker is set atomically
        generation = self._generations.get(key, 0)

        async def _run() -> CacheEntry:
            try:
                value = await compute()
            finally:
                if self._inflight.get(key) is task:
                    del self._inflight[key]

            new_entry = CacheEntry(
                key=key,
                value=value,
                last_updated=self.clock(),
                ttl_seconds=self.ttl_seconds,
            )
            if self._generations.get(key, 0) == generation:
                self._entries[key] = new_entry
            else:
                log.debug("Discarding recompute for invalidated key", key=key)
            return new_entry

        task = asyncio.create_task(_run())
        self._inflight[key] = task
        task.add_done_callback(self._on_recompute_done)
        log.debug("Recompute started", key=key)
        return task

    @staticmethod
    def _on_recompute_done(task: "asyncio.Task[CacheEntry]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.warning("Cache recompute failed", error=str(exc), error_type=type(exc).__name__)

    # ========================================================================
    # Invalidation
    # ========================================================================

    def invalidate(self, key: CacheKey) -> bool:
        """Drop an entry. A recompute already running will not store its result."""
        self._generations[key] = self._generations.get(key, 0) + 1
        removed = self._entries.pop(key, None) is not None
        log.debug("Cache entry invalidated", key=key, removed=removed)
        return removed

    def invalidate_subject(self, subject_id: Hashable) -> int:
        """Drop every entry of a subject, whatever the query. Returns the count."""
        subject = str(subject_id)
        keys = {k for k in self._entries if k[0] == subject} | {k for k in self._inflight if k[0] == subject}
        removed = sum(1 for k in keys if self.invalidate(k))
        log.info("Cache invalidated for subject", subject_id=subject, removed=removed)
        return removed

    def clear(self) -> None:
        for key in list(self._entries) + list(self._inflight):
            self._generations[key] = self._generations.get(key, 0) + 1
        self._entries.clear()
        log.info("Cache cleared")
