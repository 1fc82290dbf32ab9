"""
Collaborator ports.

The retrieval core depends only on these protocols; deployments inject
implementations, tests inject fakes.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from journeyrag.storage.retriever.models import MatchResult


@runtime_checkable
class EmbeddingGenerator(Protocol):
    """Turns text into a vector of the deployment dimension."""

    async def embed(self, text: str) -> List[float]:
        ...


@runtime_checkable
class PermissionEvaluator(Protocol):
    """
    Decides whether a requester may view a timeline node.

    May return False or raise PermissionDenied; both drop the node.
    """

    async def can_view(self, requesting_user_id: int, node_id: str) -> bool:
        ...


@runtime_checkable
class NodeRepository(Protocol):
    """
    Timeline node lookup, access-checked for user_id.

    Nodes are dicts with at least "id", "type" and "meta".
    """

    async def get_by_id(self, node_id: str, user_id: int) -> Optional[Dict[str, Any]]:
        ...


@runtime_checkable
class UpdatesProvider(Protocol):
    """Progress updates of a node: dicts with "notes" and "createdAt"."""

    async def get_updates(self, node_id: str, user_id: int) -> List[Dict[str, Any]]:
        ...


@runtime_checkable
class ProfileDirectory(Protocol):
    """Display data of a user: dict with "name" and optional "title" / "company"."""

    async def get_profile(self, user_id: int) -> Optional[Dict[str, Any]]:
        ...


@runtime_checkable
class MatchEnricher(Protocol):
    """Optional rewriter of why_matched strings."""

    async def enrich(self, query: str, profiles: List[MatchResult]) -> List[MatchResult]:
        ...
