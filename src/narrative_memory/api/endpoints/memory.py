"""Memory API endpoints."""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from narrative_memory.api.dependencies import get_context_manager, get_semantic_search, get_vector_index
from narrative_memory.core.decorators import with_error_handling
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models import MemoryCategory, MemoryMetadata, MemoryRole
from narrative_memory.infrastructure.vector.base import VectorIndex
from narrative_memory.services.context_manager import ContextManager
from narrative_memory.services.semantic_search import SemanticSearch

logger = get_logger(__name__)
router = APIRouter()


class RememberRequest(BaseModel):
    """Request model for storing a single memory."""

    content: str = Field(min_length=1)
    turn: int = Field(ge=0)
    role: MemoryRole = MemoryRole.SYSTEM
    category: MemoryCategory
    important_fact: bool = False
    fact_summary: str | None = None
    npc: str | None = None
    location: str | None = None
    present_characters: list[str] = Field(default_factory=list)


class RememberResponse(BaseModel):
    stored: bool
    message: str


class SearchRequest(BaseModel):
    """Request model for searching memories.

    ``filters`` takes column names (or their camelCase aliases) mapped to an
    exact value or a ``{"min": .., "max": ..}`` range; ``turn_min`` and
    ``turn_max`` are accepted as shorthands.
    """

    query: str
    limit: int = Field(default=5, ge=1, le=50)
    filters: dict[str, Any] = Field(default_factory=dict)


class SearchResponse(BaseModel):
    entries: list[dict[str, Any]]
    count: int


@router.post("/remember", response_model=RememberResponse, operation_id="remember")
@with_error_handling(reraise=True)
async def remember(
    request: RememberRequest,
    context_manager: ContextManager = Depends(get_context_manager),
) -> RememberResponse:
    """Store a single memory through the write path."""
    logger.info("Storing memory", content_length=len(request.content), turn=request.turn)

    entry = await context_manager.add_entry(
        role=request.role,
        content=request.content,
        turn=request.turn,
        metadata=MemoryMetadata(
            category=request.category,
            important_fact=request.important_fact,
            fact_summary=request.fact_summary,
            npc=request.npc,
            location=request.location,
            present_characters=request.present_characters,
        ),
    )
    if entry is None:
        return RememberResponse(stored=False, message="Memory was not stored; see server logs")
    return RememberResponse(stored=True, message="Memory stored successfully")


@router.post("/search", response_model=SearchResponse, operation_id="search")
@with_error_handling(reraise=True)
async def search(
    request: SearchRequest,
    semantic_search: SemanticSearch = Depends(get_semantic_search),
) -> SearchResponse:
    """Semantic search with optional metadata filters."""
    results = await semantic_search.search(request.query, limit=request.limit, filters=request.filters)
    return SearchResponse(entries=results.summaries(), count=results.count)


@router.get("/stats", operation_id="stats")
async def stats(index: VectorIndex = Depends(get_vector_index)) -> dict[str, Any]:
    """Collection state and entry count."""
    return await index.stats()
