"""Websocket transport for the game loop.

Each connection is one game session. The client sends the player's input as
plain text; the server answers with ``status`` while the turn is processed,
then ``gameUpdate`` or ``error``.
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from narrative_memory.api.dependencies import get_runtime
from narrative_memory.core.base import ApplicationError
from narrative_memory.core.error_context import ErrorContext
from narrative_memory.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

THINKING = "The game master is thinking..."


@router.websocket("/ws/game")
async def play(websocket: WebSocket) -> None:
    runtime = get_runtime()
    await websocket.accept()
    session = runtime.new_session()
    logger.info("Player connected", session_id=session.session_id)

    try:
        while True:
            player_input = (await websocket.receive_text()).strip()
            if not player_input:
                continue

            await websocket.send_json({"type": "status", "data": THINKING})
            try:
                update = await session.handle_player_action(player_input)
            except ApplicationError as e:
                context = ErrorContext(e, session_id=session.session_id, turn=session.turn)
                logger.error("Turn failed", error_context=context.to_dict())
                await websocket.send_json({"type": "error", "data": context.to_payload()})
                continue

            await websocket.send_json({"type": "gameUpdate", "data": update.model_dump(mode="json", by_alias=True)})
    except WebSocketDisconnect:
        logger.info("Player disconnected", session_id=session.session_id, turns=session.turn)
