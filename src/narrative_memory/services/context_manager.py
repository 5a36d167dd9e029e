"""Write path of long-term memory: tagged text in, indexed entry out."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from narrative_memory.core.base import ApplicationError
from narrative_memory.core.error_context import ErrorContext
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models import EmbeddingType, MemoryEntry, MemoryMetadata, MemoryRole
from narrative_memory.infrastructure.vector.base import AppendOutcome

if TYPE_CHECKING:
    from narrative_memory.infrastructure.vector.base import VectorIndex
    from narrative_memory.services import EmbeddingProvider

logger = get_logger(__name__)

WriteFailurePolicy = Literal["log", "raise"]


class ContextManager:
    """Embeds and persists memories.

    Under the default ``log`` policy a failed write is logged and dropped so
    the story can continue with one memory missing. Embedding and persistence
    are not transactional and nothing is retried.
    """

    def __init__(
        self,
        index: VectorIndex,
        embeddings: EmbeddingProvider,
        failure_policy: WriteFailurePolicy = "log",
    ):
        self.index = index
        self.embeddings = embeddings
        self.failure_policy = failure_policy

    async def add_entry(
        self,
        role: MemoryRole,
        content: str,
        turn: int,
        metadata: MemoryMetadata,
    ) -> MemoryEntry | None:
        """Embed ``content`` as a document and append it to the index.

        Returns:
            The persisted entry, or None if the write was dropped (failure
            under the ``log`` policy, or a discarded dimension mismatch)

        Raises:
            ApplicationError: Any embedding or store failure, under the ``raise`` policy
        """
        try:
            embedding = await self.embeddings.embed(content, EmbeddingType.DOCUMENT)
            entry = MemoryEntry.build(role=role, content=content, turn=turn, metadata=metadata, embedding=embedding)
            outcome = await self.index.append(entry)
        except ApplicationError as e:
            if self.failure_policy == "raise":
                raise
            logger.error(
                "Memory write failed; continuing without it",
                turn=turn,
                category=metadata.category.value,
                error_context=ErrorContext(e, turn=turn).to_dict(),
            )
            return None

        if outcome is AppendOutcome.DISCARDED:
            return None

        logger.info(
            "Memory stored",
            turn=turn,
            role=role.value,
            category=metadata.category.value,
            important_fact=metadata.important_fact,
        )
        return entry
