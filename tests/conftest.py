"""
JourneyRAG Test Configuration
=============================

Shared fixtures for all tests: an in-memory aiosqlite database per test,
stores over it and chunk / edge factories.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from journeyrag.storage import (
    Chunk,
    ChunkStore,
    Database,
    DatabaseConfig,
    Edge,
    RelationshipGraph,
)

DIMENSION = 3

# Fixed reference time so recency scores are reproducible
NOW = datetime(2026, 1, 15, 12, 0, 0)


# Environment fixtures
@pytest.fixture
def test_config():
    """Get test environment configuration."""
    from journeyrag.config import get_environment_config, TEST_ENV
    return get_environment_config(TEST_ENV)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def db_config():
    return DatabaseConfig(
        url="sqlite+aiosqlite:///:memory:",
        embedding_dimension=DIMENSION,
        default_tenant="default",
    )


@pytest_asyncio.fixture
async def database(db_config):
    """Connected in-memory database, tables created."""
    db = Database(db_config)
    await db.connect()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def chunk_store(database):
    return ChunkStore(database)


@pytest_asyncio.fixture
async def graph(database):
    return RelationshipGraph(database)


@pytest.fixture
def add_chunk(chunk_store):
    """Factory storing a chunk and returning its id."""

    async def _add(
        owner_id: int,
        embedding: List[float],
        text: str = "chunk",
        entity_type: str = "job",
        node_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        tenant_id: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> int:
        return await chunk_store.put(Chunk(
            owner_id=owner_id,
            text=text,
            embedding=embedding,
            entity_type=entity_type,
            node_id=node_id,
            created_at=created_at or NOW - timedelta(days=30),
            tenant_id=tenant_id,
            meta=meta or {},
        ))

    return _add


@pytest.fixture
def add_edge(graph):
    """Factory storing an edge and returning its id."""

    async def _add(src: int, dst: int, weight: float = 1.0, directed: bool = True, rel_type: str = "similar_role") -> int:
        return await graph.add_edge(Edge(
            src_chunk_id=src,
            dst_chunk_id=dst,
            rel_type=rel_type,
            weight=weight,
            directed=directed,
        ))

    return _add
