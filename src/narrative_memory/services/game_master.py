"""One player's game: the turn loop tying memory, tools and generation together."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

from narrative_memory.core.errors import EmbeddingError, InvalidFilterError, SearchError
from narrative_memory.core.logging import bind_log_context, get_logger
from narrative_memory.domain.models import (
    ChatMessage,
    GameUpdate,
    MemoryCategory,
    MemoryMetadata,
    MemoryRole,
)
from narrative_memory.services.memory_tools import TOOL_DECLARATIONS
from narrative_memory.services.prompts import CONFUSED_MASTER, SILENT_MASTER, build_player_message
from narrative_memory.services.semantic_search import SearchResults

if TYPE_CHECKING:
    from narrative_memory.services import GenerationService
    from narrative_memory.services.context_manager import ContextManager
    from narrative_memory.services.conversation_window import ConversationWindow
    from narrative_memory.services.memory_tools import MemoryToolExecutor
    from narrative_memory.services.semantic_search import SemanticSearch

logger = get_logger(__name__)


class GameSession:
    """Turn counter and short-term window for one player.

    Sessions share the long-term memory components; each owns its window.
    """

    def __init__(
        self,
        generator: GenerationService,
        search: SemanticSearch,
        context_manager: ContextManager,
        tools: MemoryToolExecutor,
        window: ConversationWindow,
        max_semantic_results: int = 5,
        session_id: str | None = None,
    ):
        self.generator = generator
        self.search = search
        self.context_manager = context_manager
        self.tools = tools
        self.window = window
        self.max_semantic_results = max_semantic_results
        self.session_id = session_id or uuid4().hex[:12]
        self.turn = 0

    async def _recall(self, player_input: str) -> SearchResults:
        try:
            return await self.search.search(player_input, limit=self.max_semantic_results)
        except (SearchError, EmbeddingError, InvalidFilterError) as e:
            logger.warning("Memory recall failed; narrating without it", error_code=e.code.value, error=e.message)
            return SearchResults()

    async def handle_player_action(self, player_input: str) -> GameUpdate:
        """Play one turn.

        Raises:
            GenerationError: The generation service failed
        """
        self.turn += 1
        turn = self.turn

        with bind_log_context(session_id=self.session_id, turn=turn):
            logger.info("Turn started", input_length=len(player_input))

            recalled = await self._recall(player_input)
            messages = [
                *self.window.transcript(),
                ChatMessage(
                    role="user",
                    text=build_player_message(player_input, [hit.entry.content for hit in recalled.hits]),
                ),
            ]

            reply = await self.generator.generate(messages, tools=TOOL_DECLARATIONS)
            if reply.wants_tools:
                logger.info("Game master is consulting memory", tools=[call.name for call in reply.tool_calls])
                results = await self.tools.execute_all(reply.tool_calls, turn)
                messages.append(ChatMessage(role="assistant", text=reply.text, tool_calls=reply.tool_calls))
                messages.append(ChatMessage(role="user", tool_results=results))
                reply = await self.generator.generate(messages, tools=TOOL_DECLARATIONS)
                narration = reply.text or SILENT_MASTER
            else:
                narration = reply.text or CONFUSED_MASTER

            await self.context_manager.add_entry(
                role=MemoryRole.NARRATOR,
                content=narration,
                turn=turn,
                metadata=MemoryMetadata(category=MemoryCategory.NARRATION, important_fact=False),
            )
            self.window.record_exchange(player_input, narration, turn)

            logger.info("Turn completed", recalled=recalled.count, window=len(self.window))
            return GameUpdate(
                player_input=player_input,
                master_response=narration,
                memory_results=recalled.summaries(),
                transcript=self.window.turns,
                turn=turn,
            )
