"""
Database Connection
===================

Async SQLAlchemy engine shared by ChunkStore and RelationshipGraph.

Environment Variables:
    JOURNEYRAG_DATABASE_URL: Async SQLAlchemy URL (default: current environment)
    JOURNEYRAG_EMBEDDING_DIMENSION: Vector length (default: 1536)
    JOURNEYRAG_DEFAULT_TENANT: Tenant for untagged chunks (default: "default")
    JOURNEYRAG_POOL_SIZE: Connection pool size for server databases (default: 10)
    JOURNEYRAG_ECHO_SQL: Log SQL statements (default: false)
"""

import os
from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from journeyrag.config import get_current_environment
from journeyrag.storage.orm import Base

log = structlog.get_logger()


def _get_env_str(key: str, default: str) -> str:
    return os.environ.get(key, default)


def _get_env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


@dataclass
class DatabaseConfig:
    """
    Store connection configuration.

    All fields support override from environment variables.
    """
    url: str = field(
        default_factory=lambda: _get_env_str(
            "JOURNEYRAG_DATABASE_URL", get_current_environment().database_url
        )
    )
    embedding_dimension: int = field(
        default_factory=lambda: _get_env_int(
            "JOURNEYRAG_EMBEDDING_DIMENSION", get_current_environment().embedding_dimension
        )
    )
    default_tenant: str = field(
        default_factory=lambda: _get_env_str(
            "JOURNEYRAG_DEFAULT_TENANT", get_current_environment().default_tenant
        )
    )
    pool_size: int = field(default_factory=lambda: _get_env_int("JOURNEYRAG_POOL_SIZE", 10))
    echo: bool = field(
        default_factory=lambda: _get_env_str("JOURNEYRAG_ECHO_SQL", "false").lower() == "true"
    )

    def __post_init__(self):
        if self.embedding_dimension < 1:
            raise ValueError(f"embedding_dimension must be >= 1, got {self.embedding_dimension}")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.is_sqlite and (":memory:" in self.url or self.url.rstrip("/").endswith("sqlite+aiosqlite:"))


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns the async engine and session factory.

    Example:
        db = Database(DatabaseConfig(url="sqlite+aiosqlite:///journeyrag.db"))
        await db.connect()

        async with db.session() as session:
            ...

        await db.close()
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DatabaseConfig()
        self._engine: Optional[AsyncEngine] = None
        self._session_maker: Optional[async_sessionmaker] = None
        self._connected = False

        log.info(
            "Database initialized",
            url=self.config.url,
            embedding_dimension=self.config.embedding_dimension,
            default_tenant=self.config.default_tenant,
        )

    async def connect(self, create_tables: bool = True) -> None:
        """Create the engine and, by default, the tables."""
        if self._connected:
            log.debug("Already connected")
            return

        engine_kwargs = {"echo": self.config.echo}
        if self.config.is_memory:
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        elif not self.config.is_sqlite:
            engine_kwargs["pool_size"] = self.config.pool_size

        self._engine = create_async_engine(self.config.url, **engine_kwargs)
        if self.config.is_sqlite:
            event.listen(self._engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self._session_maker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._connected = True

        if create_tables:
            await self.create_tables()

        log.info("Connected to database", url=self.config.url)

    async def create_tables(self) -> None:
        """Create graphrag_chunks and graphrag_edges if missing."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if not self._connected:
            return
        await self._engine.dispose()
        self._engine = None
        self._session_maker = None
        self._connected = False
        log.info("Disconnected from database")

    @property
    def engine(self) -> AsyncEngine:
        if not self._connected:
            raise RuntimeError("Not connected to database. Call connect() first.")
        return self._engine

    @property
    def is_connected(self) -> bool:
        return self._connected

    def session(self) -> AsyncSession:
        """New AsyncSession; use as an async context manager."""
        if not self._connected:
            raise RuntimeError("Not connected to database. Call connect() first.")
        return self._session_maker()
