"""
Pydantic schemas for the service layer.

Field names are snake_case; camelCase aliases match the API payloads and
both forms are accepted on input.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        """Serialise with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# ============================================================================
# SEARCH
# ============================================================================

class SearchProfilesRequest(_CamelModel):
    """Profile search request."""

    query: str = Field(..., min_length=1, description="Free-text search query")
    limit: int = Field(default=20, ge=1, le=100, description="Maximum profiles (1-100)")
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    exclude_user_id: Optional[int] = Field(default=None, alias="excludeUserId")
    requesting_user_id: Optional[int] = Field(default=None, alias="requestingUserId")
    similarity_threshold: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        alias="similarityThreshold",
        description="Minimum direct similarity of seeds (0-1)",
    )
    since: Optional[datetime] = Field(default=None, description="Only seeds created after this time")

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("query must not be blank")
        return v.strip()


class MatchedNode(_CamelModel):
    chunk_id: int = Field(..., alias="chunkId")
    node_id: Optional[str] = Field(default=None, alias="nodeId")
    type: str
    text: str
    meta: Dict[str, Any] = Field(default_factory=dict)
    score: float
    direct_similarity: float = Field(..., alias="directSimilarity")
    graph_aware_score: float = Field(..., alias="graphAwareScore")
    recency_score: float = Field(..., alias="recencyScore")
    why_matched: str = Field(default="", alias="whyMatched")


class ProfileMatch(_CamelModel):
    user_id: int = Field(..., alias="userId")
    score: float
    why_matched: str = Field(default="", alias="whyMatched")
    matched_nodes: List[MatchedNode] = Field(default_factory=list, alias="matchedNodes")


class SearchProfilesResponse(_CamelModel):
    """totalResults always equals len(results)."""

    results: List[ProfileMatch] = Field(default_factory=list)
    total_results: int = Field(..., ge=0, alias="totalResults")
    query: str


# ============================================================================
# EXPERIENCE MATCHES
# ============================================================================

class MatchSummary(_CamelModel):
    """Summary of a matched profile."""

    id: str
    name: str = Field(..., min_length=1, max_length=100)
    title: str = Field(default="", max_length=200)
    company: Optional[str] = Field(default=None, max_length=100)
    score: float = Field(..., ge=0.0, le=1.0)
    match_type: Literal["profile", "opportunity"] = Field(default="profile", alias="matchType")
    preview_text: Optional[str] = Field(default=None, max_length=200, alias="previewText")
    why_matched: Optional[str] = Field(default=None, alias="whyMatched")


class ExperienceMatchData(_CamelModel):
    """Cached experience-match payload; matchCount always equals len(matches)."""

    node_id: str = Field(..., alias="nodeId")
    user_id: int = Field(..., alias="userId")
    match_count: int = Field(..., ge=0, le=100, alias="matchCount")
    matches: List[MatchSummary] = Field(default_factory=list)
    search_query: str = Field(default="", alias="searchQuery")
    similarity_threshold: float = Field(..., ge=0.0, le=1.0, alias="similarityThreshold")
    last_updated: datetime = Field(..., alias="lastUpdated")
    cache_ttl: float = Field(..., gt=0, alias="cacheTTL")


# ============================================================================
# INGESTION
# ============================================================================

class ChunkCreate(_CamelModel):
    owner_id: int = Field(..., alias="ownerId")
    node_id: Optional[str] = Field(default=None, alias="nodeId")
    text: str = Field(..., min_length=1)
    embedding: List[float] = Field(..., min_length=1)
    entity_type: str = Field(..., min_length=1, alias="entityType")
    meta: Dict[str, Any] = Field(default_factory=dict)
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")


class EdgeCreate(_CamelModel):
    src_chunk_id: int = Field(..., alias="srcChunkId")
    dst_chunk_id: int = Field(..., alias="dstChunkId")
    rel_type: str = Field(..., min_length=1, alias="relType")
    weight: float = Field(default=1.0, gt=0.0)
    directed: bool = True
    meta: Dict[str, Any] = Field(default_factory=dict)
