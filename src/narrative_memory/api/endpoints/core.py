"""Liveness and service description."""

from typing import Any

from fastapi import APIRouter

from narrative_memory.api import dependencies
from narrative_memory.domain.models.utils import utc_now

router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    return {"message": "Narrative Memory API", "version": "0.1.0", "status": "running", "game": "/ws/game"}


@router.get("/health", operation_id="health")
async def health_check() -> dict[str, Any]:
    """Liveness plus the state of the shared memory collection, without touching the store."""
    runtime = dependencies.runtime
    memory: dict[str, Any] = {"initialized": runtime is not None}
    if runtime is not None:
        memory |= {
            "collection": runtime.index.collection_name,
            "engine": runtime.index.engine,
            "state": runtime.index.state.value,
        }
    return {"status": "healthy", "timestamp": utc_now().isoformat(), "memory": memory}
