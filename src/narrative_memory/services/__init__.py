"""Service layer interfaces and implementations."""

from typing import Any, Protocol, runtime_checkable

from narrative_memory.domain.models.conversation import ChatMessage, GenerationResult
from narrative_memory.domain.models.embedding import EmbeddingType


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding services."""

    async def embed(self, text: str, intent: EmbeddingType) -> list[float]:
        """Embed one text. Query and document intents produce comparable but distinct vectors."""
        ...


@runtime_checkable
class GenerationService(Protocol):
    """Protocol for the language model that narrates the game."""

    async def generate(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None = None,
    ) -> GenerationResult:
        """Produce the next assistant message: narration text, tool calls, or both."""
        ...

    async def close(self) -> None:
        """Release the client connection pool."""
        ...


__all__ = ["EmbeddingProvider", "GenerationService"]
