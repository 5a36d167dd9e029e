"""Long-lived components shared by every game session in a process."""

from __future__ import annotations

from dataclasses import dataclass

from narrative_memory.core.config import Settings, settings
from narrative_memory.core.logging import get_logger
from narrative_memory.infrastructure.embeddings.factory import create_embedding_service
from narrative_memory.infrastructure.generation.anthropic_client import AnthropicGenerationService
from narrative_memory.infrastructure.vector.base import VectorIndex
from narrative_memory.infrastructure.vector.factory import create_vector_index
from narrative_memory.services import EmbeddingProvider, GenerationService
from narrative_memory.services.context_manager import ContextManager
from narrative_memory.services.conversation_window import ConversationWindow
from narrative_memory.services.game_master import GameSession
from narrative_memory.services.memory_tools import MemoryToolExecutor
from narrative_memory.services.semantic_search import SemanticSearch

logger = get_logger(__name__)


@dataclass
class MemoryRuntime:
    """One vector index per collection, shared; windows and turn counters are per session."""

    config: Settings
    index: VectorIndex
    embeddings: EmbeddingProvider
    generator: GenerationService
    search: SemanticSearch
    context_manager: ContextManager
    tools: MemoryToolExecutor

    def new_session(self, session_id: str | None = None) -> GameSession:
        return GameSession(
            generator=self.generator,
            search=self.search,
            context_manager=self.context_manager,
            tools=self.tools,
            window=ConversationWindow(self.config.max_history_exchanges),
            max_semantic_results=self.config.max_semantic_results,
            session_id=session_id,
        )

    async def close(self) -> None:
        try:
            await self.index.close()
        finally:
            await self.generator.close()


def build_runtime(
    index: VectorIndex,
    embeddings: EmbeddingProvider,
    generator: GenerationService,
    config: Settings | None = None,
) -> MemoryRuntime:
    config = config or settings
    search = SemanticSearch(index, embeddings, default_limit=config.max_semantic_results)
    context_manager = ContextManager(index, embeddings, failure_policy=config.memory_write_failure_policy)
    tools = MemoryToolExecutor(context_manager, search, default_limit=config.max_semantic_results)
    return MemoryRuntime(
        config=config,
        index=index,
        embeddings=embeddings,
        generator=generator,
        search=search,
        context_manager=context_manager,
        tools=tools,
    )


async def create_runtime(config: Settings | None = None) -> MemoryRuntime:
    """Build the production runtime from settings and open the vector index.

    Raises:
        AuthenticationError: An API key is missing
        StoreConnectionError: The vector store is unreachable
    """
    config = config or settings
    embeddings = create_embedding_service(config)
    generator = AnthropicGenerationService(
        model=config.generation_model,
        api_key=config.anthropic_api_key,
        max_tokens=config.generation_max_tokens,
    )
    index = create_vector_index(config)
    state = await index.open()
    logger.info("Memory runtime ready", collection=index.collection_name, engine=index.engine, state=state.value)
    return build_runtime(index, embeddings, generator, config)
