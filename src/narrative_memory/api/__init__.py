"""HTTP and websocket surface of the narrative memory service."""

from fastapi import APIRouter

from .endpoints import core, game, memory

# Versioned REST routes, mounted under /api/v1
api_router = APIRouter()
api_router.include_router(memory.router, prefix="/memory", tags=["memory"])

# Unversioned routes: health and the game websocket
root_router = APIRouter()
root_router.include_router(core.router, tags=["core"])
root_router.include_router(game.router, tags=["game"])
