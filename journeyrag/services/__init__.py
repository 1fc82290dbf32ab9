"""
JourneyRAG Services
===================

Application services over the retrieval core:
- IngestionService: validated chunk / edge creation
- SearchService: cross-profile search
- ExperienceMatchService: cached matches for current experiences

Collaborators (embedding, permissions, nodes, updates, profiles) are
injected through the protocols in journeyrag.services.interfaces.
"""

from journeyrag.services.interfaces import (
    EmbeddingGenerator,
    MatchEnricher,
    NodeRepository,
    PermissionEvaluator,
    ProfileDirectory,
    UpdatesProvider,
)
from journeyrag.services.models import (
    ChunkCreate,
    EdgeCreate,
    ExperienceMatchData,
    MatchSummary,
    SearchProfilesRequest,
    SearchProfilesResponse,
)
from journeyrag.services.ingestion import IngestionService
from journeyrag.services.search import SearchService
from journeyrag.services.experience_matches import (
    ExperienceMatchService,
    build_search_query,
    is_current_experience,
)

__all__ = [
    # Ports
    "EmbeddingGenerator",
    "MatchEnricher",
    "NodeRepository",
    "PermissionEvaluator",
    "ProfileDirectory",
    "UpdatesProvider",
    # Schemas
    "ChunkCreate",
    "EdgeCreate",
    "ExperienceMatchData",
    "MatchSummary",
    "SearchProfilesRequest",
    "SearchProfilesResponse",
    # Services
    "IngestionService",
    "SearchService",
    "ExperienceMatchService",
    "build_search_query",
    "is_current_experience",
]
