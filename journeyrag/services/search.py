"""
Search Service
==============

Profile search over the graph-aware retriever: validates the request, embeds
the query, retrieves and shapes the response.
"""

from typing import Any, Dict, Union

import structlog

from journeyrag.errors import JourneyRAGError
from journeyrag.services.interfaces import EmbeddingGenerator
from journeyrag.services.models import SearchProfilesRequest, SearchProfilesResponse
from journeyrag.storage.retriever import GraphAwareRetriever, SearchRequest

log = structlog.get_logger()


class SearchService:
    """
    Cross-profile search.

    Example:
        service = SearchService(retriever, embedder)
        response = await service.search_profiles({"query": "data engineer", "limit": 10})
        response.to_payload()  # {"results": [...], "totalResults": n, "query": "data engineer"}
    """

    def __init__(self, retriever: GraphAwareRetriever, embedder: EmbeddingGenerator):
        self.retriever = retriever
        self.embedder = embedder

    async def search_profiles(
        self,
        data: Union[SearchProfilesRequest, Dict[str, Any]],
    ) -> SearchProfilesResponse:
        """
        Run a profile search.

        Raises:
            pydantic.ValidationError: Malformed request.
            EmptyQueryEmbedding: The embedder returned an unusable vector.
            RetrievalTimeout: A store call exceeded the configured timeout.
        """
        request = data if isinstance(data, SearchProfilesRequest) else SearchProfilesRequest.model_validate(data)

        try:
            embedding = await self.embedder.embed(request.query)
            profiles = await self.retriever.retrieve(SearchRequest(
                query_embedding=embedding,
                query_text=request.query,
                limit=request.limit,
                tenant_id=request.tenant_id,
                requesting_user_id=request.requesting_user_id,
                exclude_user_id=request.exclude_user_id,
                since=request.since,
                similarity_threshold=request.similarity_threshold,
            ))
        except JourneyRAGError as e:
            log.error("Profile search failed", query_length=len(request.query), error=str(e))
            raise

        results = [profile.to_dict() for profile in profiles]
        response = SearchProfilesResponse.model_validate({
            "results": results,
            "totalResults": len(results),
            "query": request.query,
        })

        log.info(
            "Profile search complete",
            query_length=len(request.query),
            total_results=response.total_results,
            limit=request.limit,
        )
        return response
