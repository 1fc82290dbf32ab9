"""
Experience Match Service
========================

Matches for a user's current experience (job, education or career
transition): builds a query from the node, searches profiles excluding the
owner and caches the summarised result per node and query.

Career transitions also include the notes of their updates from the last
30 days, most recent first.
"""

import re
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog

from journeyrag.cache import CachePolicy, ResultCache
from journeyrag.services.interfaces import NodeRepository, ProfileDirectory, UpdatesProvider
from journeyrag.services.models import (
    ExperienceMatchData,
    MatchSummary,
    ProfileMatch,
    SearchProfilesRequest,
)
from journeyrag.services.search import SearchService
from journeyrag.storage.utils import to_naive_utc, utcnow
from journeyrag.weights.config import CacheSettings

log = structlog.get_logger()

UPDATE_WINDOW_DAYS = 30
QUERY_LENGTH_LIMIT = 2000

_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{2})$")


class TimelineNodeType(str, Enum):
    JOB = "job"
    EDUCATION = "education"
    CAREER_TRANSITION = "careerTransition"


_TYPE_ALIASES = {
    "job": TimelineNodeType.JOB,
    "education": TimelineNodeType.EDUCATION,
    "careerTransition": TimelineNodeType.CAREER_TRANSITION,
    "career_transition": TimelineNodeType.CAREER_TRANSITION,
}

# Field used as the query when a node has no description
_FALLBACK_FIELD = {
    TimelineNodeType.JOB: "role",
    TimelineNodeType.EDUCATION: "degree",
    TimelineNodeType.CAREER_TRANSITION: "title",
}


def experience_type(node: Dict[str, Any]) -> Optional[TimelineNodeType]:
    """TimelineNodeType of an experience node, None for any other node."""
    return _TYPE_ALIASES.get(node.get("type"))


def is_current_experience(node: Dict[str, Any], today: Optional[date] = None) -> bool:
    """
    True for experience nodes without an end date or ending this month or later.

    End dates use the YYYY-MM format; any other format counts as not current.
    """
    if experience_type(node) is None:
        return False
    end_date = (node.get("meta") or {}).get("endDate")
    if not end_date:
        return True
    match = _YEAR_MONTH.match(str(end_date))
    if not match:
        return False
    today = today or utcnow().date()
    return (int(match.group(1)), int(match.group(2))) >= (today.year, today.month)


def build_search_query(node: Dict[str, Any], update_notes: Optional[List[str]] = None) -> str:
    """
    Description, else role / degree / title; update notes are appended as

        <base>\\n\\nRecent updates:\\n<note>\\n<note>
    """
    node_type = experience_type(node)
    if node_type is None:
        return ""
    meta = node.get("meta") or {}
    base = (meta.get("description") or meta.get(_FALLBACK_FIELD[node_type]) or "").strip()
    if not base:
        return ""

    notes = [note.strip() for note in (update_notes or []) if note and note.strip()]
    if not notes:
        return base
    return base + "\n\nRecent updates:\n" + "\n".join(notes)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, str):
        try:
            return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


class ExperienceMatchService:
    """
    Cached matches for current experience nodes.

    Example:
        service = ExperienceMatchService(search_service, node_repository, updates_provider)
        data = await service.get_experience_matches("node-uuid", user_id=7)
        data.to_payload()  # {"nodeId": ..., "matchCount": 3, "matches": [...], ...}
    """

    def __init__(
        self,
        search_service: SearchService,
        node_repository: NodeRepository,
        updates_provider: Optional[UpdatesProvider] = None,
        profile_directory: Optional[ProfileDirectory] = None,
        settings: Optional[CacheSettings] = None,
        cache: Optional[ResultCache] = None,
    ):
        self.search_service = search_service
        self.node_repository = node_repository
        self.updates_provider = updates_provider
        self.profile_directory = profile_directory
        self.settings = settings or CacheSettings()
        self.cache = cache or ResultCache(
            ttl_seconds=self.settings.ttl_seconds,
            policy=CachePolicy(self.settings.policy),
        )

        log.info(
            "ExperienceMatchService initialized",
            match_limit=self.settings.experience_match_limit,
            similarity_threshold=self.settings.experience_match_threshold,
            cache_ttl=self.cache.ttl_seconds,
        )

    async def get_experience_matches(
        self,
        node_id: str,
        user_id: int,
        force_refresh: bool = False,
    ) -> Optional[ExperienceMatchData]:
        """
        Matches for one experience node.

        Returns:
            None for unknown or non-experience nodes; an empty payload for
            past experiences or nodes without usable text.

        Raises:
            RetrievalTimeout / EmptyQueryEmbedding: From the search, re-raised.
        """
        node = await self.node_repository.get_by_id(node_id, user_id)
        if node is None:
            log.warning("Node not found", node_id=node_id)
            return None

        node_type = experience_type(node)
        if node_type is None:
            log.info("Node is not an experience type", node_id=node_id, type=node.get("type"))
            return None

        if not is_current_experience(node):
            log.info("Experience is not current", node_id=node_id)
            return self._empty_payload(node_id, user_id)

        update_notes = None
        if node_type is TimelineNodeType.CAREER_TRANSITION:
            update_notes = await self._recent_update_notes(node_id, user_id)

        query = build_search_query(node, update_notes)
        if len(query) > QUERY_LENGTH_LIMIT:
            log.warning(
                "Query length exceeds recommended limit, truncating",
                node_id=node_id,
                total_length=len(query),
                base_length=len(build_search_query(node)),
                update_count=len(update_notes or []),
            )
            query = query[:QUERY_LENGTH_LIMIT]

        if not query:
            log.warning("Unable to build search query from node", node_id=node_id)
            return self._empty_payload(node_id, user_id)

        key = ResultCache.make_key(node_id, query)
        try:
            entry = await self.cache.get_or_compute(
                key,
                lambda: self._compute_matches(query, user_id),
                force_refresh=force_refresh,
            )
        except Exception as e:
            log.error("Failed to get experience matches", node_id=node_id, error=str(e))
            raise

        matches: List[MatchSummary] = entry.value
        return ExperienceMatchData(
            node_id=node_id,
            user_id=user_id,
            match_count=len(matches),
            matches=matches,
            search_query=query,
            similarity_threshold=self.settings.experience_match_threshold,
            last_updated=entry.last_updated,
            cache_ttl=self.cache.ttl_seconds,
        )

    async def should_show_matches(self, node_id: str, user_id: int) -> bool:
        """True for current experience nodes. Never raises."""
        try:
            node = await self.node_repository.get_by_id(node_id, user_id)
        except Exception as e:
            log.error("Failed to check if should show matches", node_id=node_id, error=str(e))
            return False
        return node is not None and is_current_experience(node)

    def invalidate_cache(self, node_id: str) -> int:
        """Drop every cached result of a node (called when the node changes)."""
        removed = self.cache.invalidate_subject(node_id)
        log.info("Cache invalidated for node", node_id=node_id, removed=removed)
        return removed

    # ========================================================================
    # Internals
    # ========================================================================

    def _empty_payload(self, node_id: str, user_id: int) -> ExperienceMatchData:
        return ExperienceMatchData(
            node_id=node_id,
            user_id=user_id,
            match_count=0,
            matches=[],
            search_query="",
            similarity_threshold=self.settings.experience_match_threshold,
            last_updated=utcnow(),
            cache_ttl=self.cache.ttl_seconds,
        )

    async def _recent_update_notes(self, node_id: str, user_id: int) -> List[str]:
        """Notes of updates from the last UPDATE_WINDOW_DAYS, newest first."""
        if self.updates_provider is None:
            return []
        try:
            updates = await self.updates_provider.get_updates(node_id, user_id)
        except Exception as e:
            log.warning(
                "Failed to fetch updates, continuing with node-only matching",
                node_id=node_id,
                error=str(e),
            )
            return []

        window_start = utcnow() - timedelta(days=UPDATE_WINDOW_DAYS)
        recent = []
        for update in updates:
            created_at = _parse_timestamp(update.get("createdAt"))
            if created_at is not None and created_at >= window_start:
                recent.append((created_at, update.get("notes") or ""))
        recent.sort(key=lambda item: item[0], reverse=True)
        notes = [note for _, note in recent if note.strip()]

        log.info("Including updates in query", node_id=node_id, update_count=len(notes))
        return notes

    async def _compute_matches(self, query: str, user_id: int) -> List[MatchSummary]:
        response = await self.search_service.search_profiles(SearchProfilesRequest(
            query=query,
            limit=self.settings.experience_match_limit,
            exclude_user_id=user_id,
            requesting_user_id=user_id,
            similarity_threshold=self.settings.experience_match_threshold,
        ))
        return [await self._summarise(profile) for profile in response.results]

    async def _summarise(self, profile: ProfileMatch) -> MatchSummary:
        directory_entry = None
        if self.profile_directory is not None:
            directory_entry = await self.profile_directory.get_profile(profile.user_id)
        directory_entry = directory_entry or {}

        top = profile.matched_nodes[0] if profile.matched_nodes else None
        top_meta = top.meta if top else {}

        name = directory_entry.get("name") or f"User {profile.user_id}"
        title = (
            directory_entry.get("title")
            or top_meta.get("role")
            or top_meta.get("title")
            or top_meta.get("degree")
            or ""
        )
        company = directory_entry.get("company") or top_meta.get("company")

        return MatchSummary(
            id=str(profile.user_id),
            name=str(name)[:100],
            title=str(title)[:200],
            company=str(company)[:100] if company else None,
            score=min(max(profile.score, 0.0), 1.0),
            match_type="profile",
            preview_text=top.text[:200] if top else None,
            why_matched=profile.why_matched or None,
        )
