"""
GraphRAG SQLAlchemy Models
==========================

ORM tables for the chunk store and the relationship graph.

- graphrag_chunks: embedded text chunks, tagged with owner and tenant
- graphrag_edges: typed, weighted, optionally directed chunk relationships

Edges reference chunks with ON DELETE CASCADE; the stores also delete edges
explicitly in the same transaction so backends without enforced foreign
keys behave the same way.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ChunkRow(Base):
    """A stored chunk. Text and embedding never change after insert."""

    __tablename__ = "graphrag_chunks"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Ownership
    user_id = Column(Integer, nullable=False, index=True)
    node_id = Column(String(64), nullable=True, index=True)  # null for owner-level chunks
    tenant_id = Column(String(100), nullable=False, index=True, default="default")

    # Content
    chunk_text = Column(Text, nullable=False)
    embedding = Column(JSON, nullable=False)
    node_type = Column(String(50), nullable=False, index=True)  # job, education, ...

    # Passthrough payload, opaque to scoring
    meta = Column("meta", JSON, nullable=False, default=dict)

    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ChunkRow(id={self.id}, user_id={self.user_id}, "
            f"node_id={self.node_id}, node_type={self.node_type})>"
        )


class EdgeRow(Base):
    """A relationship between two chunks."""

    __tablename__ = "graphrag_edges"

    id = Column(Integer, primary_key=True, autoincrement=True)

    src_chunk_id = Column(
        Integer, ForeignKey("graphrag_chunks.id", ondelete="CASCADE"), nullable=False
    )
    dst_chunk_id = Column(
        Integer, ForeignKey("graphrag_chunks.id", ondelete="CASCADE"), nullable=False
    )

    rel_type = Column(String(50), nullable=False, index=True)
    weight = Column(Float, nullable=False, default=1.0)
    directed = Column(Boolean, nullable=False, default=True)

    meta = Column("meta", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("weight > 0", name="graphrag_edges_weight_positive"),
        Index("ix_graphrag_edges_src", "src_chunk_id"),
        Index("ix_graphrag_edges_dst", "dst_chunk_id"),
    )

    def __repr__(self) -> str:
        arrow = "->" if self.directed else "--"
        return (
            f"<EdgeRow(id={self.id}, {self.src_chunk_id}{arrow}{self.dst_chunk_id}, "
            f"rel_type={self.rel_type}, weight={self.weight})>"
        )
