"""
Storage Domain Models
=====================

Dataclasses for chunks and edges as seen by the retrieval engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from journeyrag.storage.orm import ChunkRow, EdgeRow


class RelationType(str, Enum):
    """Known edge types. Other strings are stored verbatim."""
    PARENT_CHILD = "parent_child"
    SAME_OWNER = "same_owner"
    SIMILAR_ROLE = "similar_role"
    SAME_COMPANY = "same_company"
    SEMANTIC = "semantic"


@dataclass
class Chunk:
    """
    Unit of searchable content.

    Attributes:
        owner_id: User owning the chunk
        text: Chunk text
        embedding: Vector (length fixed per deployment)
        entity_type: Source tag (job, education, company_document, ...)
        node_id: Source timeline node, None for owner-level chunks
        meta: Opaque passthrough payload
        tenant_id: Tenant tag (None = store default tenant)
        id: Store-generated id (None before insert)
    """
    owner_id: int
    text: str
    embedding: List[float]
    entity_type: str
    node_id: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    tenant_id: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: ChunkRow) -> "Chunk":
        return cls(
            id=row.id,
            owner_id=row.user_id,
            node_id=row.node_id,
            text=row.chunk_text,
            embedding=list(row.embedding),
            entity_type=row.node_type,
            meta=dict(row.meta or {}),
            tenant_id=row.tenant_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def __repr__(self) -> str:
        return (
            f"<Chunk(id={self.id}, owner={self.owner_id}, node={self.node_id}, "
            f"type={self.entity_type}, text={self.text[:30]!r})>"
        )


@dataclass
class Edge:
    """
    Relationship between two chunks.

    Undirected edges are traversable both ways during expansion.
    """
    src_chunk_id: int
    dst_chunk_id: int
    rel_type: str
    weight: float = 1.0
    directed: bool = True
    meta: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: EdgeRow) -> "Edge":
        return cls(
            id=row.id,
            src_chunk_id=row.src_chunk_id,
            dst_chunk_id=row.dst_chunk_id,
            rel_type=row.rel_type,
            weight=row.weight,
            directed=row.directed,
            meta=dict(row.meta or {}),
            created_at=row.created_at,
        )

    def __repr__(self) -> str:
        arrow = "->" if self.directed else "--"
        return f"<Edge({self.src_chunk_id}{arrow}{self.dst_chunk_id}, {self.rel_type}, w={self.weight})>"
