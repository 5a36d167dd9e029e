"""Construction of embedding services.

Provider construction is the one place where a missing credential is fatal:
the application refuses to start rather than run a game that cannot remember.
"""

from __future__ import annotations

from narrative_memory.core.config import Settings, settings
from narrative_memory.core.decorators import with_error_handling
from narrative_memory.core.logging import get_logger
from narrative_memory.infrastructure.embeddings.voyage import VoyageEmbeddingService

logger = get_logger(__name__)


class EmbeddingServiceBuilder:
    """Builder for configured embedding service instances."""

    def __init__(self, config: Settings | None = None):
        self.config = config or settings
        self._api_key: str | None = None
        self._model: str | None = None

    def with_api_key(self, api_key: str) -> EmbeddingServiceBuilder:
        self._api_key = api_key
        return self

    def with_model(self, model: str) -> EmbeddingServiceBuilder:
        self._model = model
        return self

    @with_error_handling(reraise=True)
    def build(self) -> VoyageEmbeddingService:
        """Build the configured embedding service.

        Raises:
            AuthenticationError: If no API key is configured
        """
        service = VoyageEmbeddingService(
            model=self._model or self.config.voyage_model,
            api_key=self._api_key or self.config.voyage_api_key,
            timeout=self.config.embedding_timeout_seconds,
        )

        logger.info("Embedding service ready", model=service.model, dimensions=service.get_model_dimensions())
        return service


def create_embedding_service(
    config: Settings | None = None,
    api_key: str | None = None,
    model: str | None = None,
) -> VoyageEmbeddingService:
    """Convenience function to create an embedding service.

    Example:
        ```python
        embeddings = create_embedding_service()
        search = SemanticSearch(index, embeddings)
        ```
    """
    builder = EmbeddingServiceBuilder(config)
    if api_key:
        builder.with_api_key(api_key)
    if model:
        builder.with_model(model)
    return builder.build()
