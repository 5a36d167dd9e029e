"""API dependencies."""

from fastapi import HTTPException

from narrative_memory.infrastructure.vector.base import VectorIndex
from narrative_memory.services.context_manager import ContextManager
from narrative_memory.services.runtime import MemoryRuntime
from narrative_memory.services.semantic_search import SemanticSearch

# Set by the main.py lifespan
runtime: MemoryRuntime | None = None


def get_runtime() -> MemoryRuntime:
    if runtime is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return runtime


def get_semantic_search() -> SemanticSearch:
    return get_runtime().search


def get_context_manager() -> ContextManager:
    return get_runtime().context_manager


def get_vector_index() -> VectorIndex:
    return get_runtime().index
