"""Query-side composition of the embedding provider and the vector index."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from narrative_memory.core.base import ErrorLevel
from narrative_memory.core.decorators import with_error_handling
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models import EmbeddingType, MemoryHit

if TYPE_CHECKING:
    from narrative_memory.infrastructure.vector.base import VectorIndex
    from narrative_memory.services import EmbeddingProvider

logger = get_logger(__name__)


class SearchResults(BaseModel):
    """Ranked hits, nearest first."""

    hits: list[MemoryHit] = Field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.hits)

    def summaries(self) -> list[dict[str, Any]]:
        return [hit.to_summary() for hit in self.hits]


class SemanticSearch:
    """Free-text search over long-term memory."""

    def __init__(self, index: VectorIndex, embeddings: EmbeddingProvider, default_limit: int = 5):
        self.index = index
        self.embeddings = embeddings
        self.default_limit = default_limit

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def search(
        self,
        query: str,
        limit: int | None = None,
        filters: Mapping[str, Any] | None = None,
    ) -> SearchResults:
        """Embed ``query`` with query intent and return the nearest filtered memories.

        An empty or whitespace-only query returns no results without calling
        the embedding provider or the index.

        Raises:
            EmbeddingError: The query could not be embedded
            InvalidFilterError: A filter is malformed
            SearchError: The index query failed
        """
        if not query or not query.strip():
            return SearchResults()

        limit = self.default_limit if limit is None else limit
        vector = await self.embeddings.embed(query, EmbeddingType.QUERY)
        hits = await self.index.search(vector, limit=limit, filters=filters)

        logger.info(
            "Semantic search completed",
            collection=self.index.collection_name,
            results=len(hits),
            limit=limit,
            filtered=bool(filters),
        )
        return SearchResults(hits=hits)
