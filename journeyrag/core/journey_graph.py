"""
Journey Graph
=============

Orchestration class wiring the JourneyRAG components together:
- Database (async SQLAlchemy)
- ChunkStore and RelationshipGraph
- GraphAwareRetriever (configured from the WeightStore)
- Ingestion, search and experience-match services

Usage:
    from journeyrag import JourneyGraph, JourneyConfig

    graph = JourneyGraph(JourneyConfig(database_url="sqlite+aiosqlite:///journeyrag.db"))
    await graph.connect()

    result = await graph.ingest(chunks=[...], edges=[...])
    profiles = await graph.search(query_embedding, limit=10, exclude_user_id=7)

    await graph.close()
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog

from journeyrag.cache import CachePolicy, ResultCache
from journeyrag.services import (
    EmbeddingGenerator,
    ExperienceMatchService,
    IngestionService,
    MatchEnricher,
    NodeRepository,
    PermissionEvaluator,
    ProfileDirectory,
    SearchService,
    UpdatesProvider,
)
from journeyrag.storage import (
    ChunkStore,
    Database,
    DatabaseConfig,
    GraphAwareRetriever,
    MatchResult,
    RelationshipGraph,
    RetrieverConfig,
    SearchRequest,
)
from journeyrag.weights import ScoringConfig, WeightStore

log = structlog.get_logger()


@dataclass
class JourneyConfig:
    """
    Configuration for JourneyGraph.

    Unset fields fall back to DatabaseConfig (environment) and the
    WeightStore YAML.
    """
    database_url: Optional[str] = None
    embedding_dimension: Optional[int] = None
    default_tenant: Optional[str] = None
    weights_path: Optional[Path] = None
    create_tables: bool = True

    def database_config(self) -> DatabaseConfig:
        overrides = {
            "url": self.database_url,
            "embedding_dimension": self.embedding_dimension,
            "default_tenant": self.default_tenant,
        }
        return DatabaseConfig(**{k: v for k, v in overrides.items() if v is not None})


@dataclass
class IngestionSummary:
    """Result of a batch ingestion."""
    chunk_ids: Dict[str, int] = field(default_factory=dict)
    edge_ids: List[int] = field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        return {"chunks": len(self.chunk_ids), "edges": len(self.edge_ids)}


class JourneyGraph:
    """
    Unified entry point for the retrieval engine.

    Architecture:
        JourneyGraph
        ├── Database (engine + sessions)
        ├── ChunkStore (embedded chunks)
        ├── RelationshipGraph (weighted edges)
        ├── GraphAwareRetriever (seed -> expand -> fuse -> aggregate)
        ├── IngestionService
        ├── SearchService (needs an EmbeddingGenerator)
        └── ExperienceMatchService (needs an EmbeddingGenerator and a NodeRepository)
    """

    def __init__(
        self,
        config: Optional[JourneyConfig] = None,
        embedder: Optional[EmbeddingGenerator] = None,
        permission_evaluator: Optional[PermissionEvaluator] = None,
        node_repository: Optional[NodeRepository] = None,
        updates_provider: Optional[UpdatesProvider] = None,
        profile_directory: Optional[ProfileDirectory] = None,
        enricher: Optional[MatchEnricher] = None,
    ):
        self.config = config or JourneyConfig()
        self.embedder = embedder
        self.permission_evaluator = permission_evaluator
        self.node_repository = node_repository
        self.updates_provider = updates_provider
        self.profile_directory = profile_directory
        self.enricher = enricher

        self.weight_store = WeightStore(self.config.weights_path)

        self._database: Optional[Database] = None
        self._chunk_store: Optional[ChunkStore] = None
        self._graph: Optional[RelationshipGraph] = None
        self._retriever: Optional[GraphAwareRetriever] = None
        self._ingestion: Optional[IngestionService] = None
        self._search: Optional[SearchService] = None
        self._experience_matches: Optional[ExperienceMatchService] = None
        self._connected = False

    async def connect(self) -> None:
        """Connect to the database and build the components."""
        if self._connected:
            log.warning("Already connected")
            return

        scoring = self.weight_store.get_config()

        self._database = Database(self.config.database_config())
        await self._database.connect(create_tables=self.config.create_tables)

        self._chunk_store = ChunkStore(self._database)
        self._graph = RelationshipGraph(self._database)
        self._retriever = self._build_retriever(scoring)
        self._ingestion = IngestionService(self._chunk_store, self._graph, embedder=self.embedder)

        if self.embedder is not None:
            self._search = SearchService(self._retriever, self.embedder)
            if self.node_repository is not None:
                self._experience_matches = ExperienceMatchService(
                    self._search,
                    self.node_repository,
                    updates_provider=self.updates_provider,
                    profile_directory=self.profile_directory,
                    settings=scoring.cache,
                    cache=ResultCache(
                        ttl_seconds=scoring.cache.ttl_seconds,
                        policy=CachePolicy(scoring.cache.policy),
                    ),
                )

        self._connected = True
        log.info(
            "JourneyGraph connected",
            search=self._search is not None,
            experience_matches=self._experience_matches is not None,
        )

    async def close(self) -> None:
        if self._database is not None:
            await self._database.close()
        self._connected = False
        log.info("JourneyGraph closed")

    def _build_retriever(self, scoring: ScoringConfig, **overrides) -> GraphAwareRetriever:
        return GraphAwareRetriever(
            self._chunk_store,
            self._graph,
            config=RetrieverConfig.from_scoring_config(scoring, **overrides),
            permission_evaluator=self.permission_evaluator,
            enricher=self.enricher,
        )

    def _require_connected(self) -> None:
        if not self._connected:
            raise RuntimeError("Not connected. Call connect() first.")

    # ========================================================================
    # Ingestion
    # ========================================================================

    async def ingest(
        self,
        chunks: List[Dict[str, Any]],
        edges: Optional[List[Dict[str, Any]]] = None,
    ) -> IngestionSummary:
        """
        Ingest chunks and edges as one all-or-nothing batch.

        Chunks may carry a "key"; edges may reference chunks by "src"/"dst"
        keys instead of srcChunkId/dstChunkId.

        Raises:
            KeyError: An edge references an unknown key.
            InvalidEmbeddingDimension / DanglingReference: From the stores.
        """
        self._require_connected()

        keyed = {}
        for position, chunk in enumerate(chunks):
            chunk = dict(chunk)
            key = str(chunk.pop("key", position))
            if key in keyed:
                raise ValueError(f"duplicate chunk key {key!r}")
            keyed[key] = chunk

        chunk_ids, edge_ids = await self._ingestion.ingest_batch(keyed, edges)
        result = IngestionSummary(chunk_ids=chunk_ids, edge_ids=edge_ids)

        log.info("Ingestion complete", **result.summary())
        return result

    # ========================================================================
    # Search
    # ========================================================================

    async def search(
        self,
        query_embedding: List[float],
        limit: Optional[int] = None,
        tenant_id: Optional[str] = None,
        exclude_user_id: Optional[int] = None,
        requesting_user_id: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        query_text: str = "",
        **retriever_overrides,
    ) -> List[MatchResult]:
        """
        Profile search from a precomputed embedding.

        retriever_overrides (max_depth, decay, ...) build a one-off retriever.
        """
        self._require_connected()
        scoring = self.weight_store.get_config()
        retriever = (
            self._build_retriever(scoring, **retriever_overrides)
            if retriever_overrides else self._retriever
        )
        return await retriever.retrieve(SearchRequest(
            query_embedding=query_embedding,
            query_text=query_text,
            limit=limit or scoring.ranking.default_limit,
            tenant_id=tenant_id,
            requesting_user_id=requesting_user_id,
            exclude_user_id=exclude_user_id,
            similarity_threshold=similarity_threshold,
        ))

    async def stats(self) -> Dict[str, Any]:
        self._require_connected()
        return {
            "database_url": self._database.config.url,
            "embedding_dimension": self._chunk_store.embedding_dimension,
            "default_tenant": self._chunk_store.default_tenant,
            "chunks": await self._chunk_store.count(),
            "edges": await self._graph.count(),
        }

    # ========================================================================
    # Properties
    # ========================================================================

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def chunk_store(self) -> Optional[ChunkStore]:
        return self._chunk_store

    @property
    def graph(self) -> Optional[RelationshipGraph]:
        return self._graph

    @property
    def retriever(self) -> Optional[GraphAwareRetriever]:
        return self._retriever

    @property
    def ingestion(self) -> Optional[IngestionService]:
        return self._ingestion

    @property
    def search_service(self) -> Optional[SearchService]:
        return self._search

    @property
    def experience_matches(self) -> Optional[ExperienceMatchService]:
        return self._experience_matches
