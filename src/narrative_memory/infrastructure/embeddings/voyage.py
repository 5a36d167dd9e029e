"""Voyage AI embedding service."""

import asyncio
from typing import Any, cast

import voyageai
from voyageai import error as voyage_error

from narrative_memory.core.base import AIServiceErrorDetails, ErrorLevel, ServiceErrorDetails
from narrative_memory.core.circuit_breaker import CircuitBreaker, RetryWithCircuitBreaker
from narrative_memory.core.config import settings
from narrative_memory.core.decorators import with_error_handling
from narrative_memory.core.errors import (
    AuthenticationError,
    EmbeddingError,
    RateLimitError,
    ServiceError,
    TimeoutError,
)
from narrative_memory.core.logging import get_logger
from narrative_memory.domain.models import EmbeddingType

logger = get_logger(__name__)

MODEL_DIMENSIONS = {
    "voyage-3": 1024,
    "voyage-3-large": 1024,
    "voyage-3.5": 1024,
    "voyage-3-lite": 512,
    "voyage-large-2": 1536,
}


class VoyageEmbeddingService:
    """Voyage AI embedding service implementation.

    Queries and stored passages are embedded with Voyage's ``input_type``
    set to ``query`` or ``document`` respectively; the two are not
    interchangeable.
    """

    @with_error_handling(error_level=ErrorLevel.ERROR)
    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        client: Any = None,
    ) -> None:
        """Initialize the Voyage embedding service.

        Args:
            model: Optional model override (defaults to settings.voyage_model)
            api_key: Optional key override (defaults to settings.voyage_api_key)
            timeout: Seconds before a single API call is abandoned
            client: Pre-built ``voyageai.AsyncClient``, mainly for tests

        Raises:
            AuthenticationError: If the API key is not configured
        """
        api_key = api_key or settings.voyage_api_key
        if not api_key and client is None:
            raise AuthenticationError(
                message="Voyage API key not found in settings",
                details=ServiceErrorDetails(
                    source="VoyageEmbeddingService",
                    operation="initialization",
                    service_name="Voyage AI",
                ),
            )

        self.model = model or settings.voyage_model
        self.timeout = timeout or settings.embedding_timeout_seconds
        # voyageai client doesn't expose a public type
        self.client: Any = client or voyageai.AsyncClient(api_key=api_key)

        self._circuit_breaker = CircuitBreaker(
            name="voyage_api",
            failure_threshold=3,
            recovery_timeout=30.0,
            expected_exception_types=(RateLimitError, TimeoutError, ServiceError),
            success_threshold=2,
        )
        self._retry_handler = RetryWithCircuitBreaker(
            circuit_breaker=self._circuit_breaker,
            max_retries=3,
            initial_delay=1.0,
            backoff_factor=2.0,
            max_delay=30.0,
            retryable_exceptions=(RateLimitError, TimeoutError),
        )

    def _details(self, intent: EmbeddingType, status_code: int | None = None) -> AIServiceErrorDetails:
        return AIServiceErrorDetails(
            source="VoyageEmbeddingService",
            operation="embed",
            service_name="Voyage AI",
            endpoint="/embeddings",
            status_code=status_code,
            model_name=self.model,
            input_type=intent.value,
        )

    async def _call_voyage_api(self, text: str, intent: EmbeddingType) -> list[float]:
        """Single API call, wrapped by the circuit breaker."""
        try:
            response = await asyncio.wait_for(
                self.client.embed(texts=[text], model=self.model, input_type=intent.value),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise TimeoutError(
                message=f"Embeddings API request timed out after {self.timeout}s",
                details=self._details(intent, status_code=408),
            ) from e
        except voyage_error.RateLimitError as e:
            raise RateLimitError(
                message="Rate limit exceeded for embeddings API",
                details=self._details(intent, status_code=429),
            ) from e
        except voyage_error.AuthenticationError as e:
            raise AuthenticationError(
                message="Authentication failed for embeddings API",
                details=self._details(intent, status_code=401),
            ) from e
        except (voyage_error.Timeout, voyage_error.APIConnectionError, voyage_error.ServiceUnavailableError) as e:
            raise TimeoutError(
                message=f"Embeddings API unreachable: {e}",
                details=self._details(intent, status_code=503),
            ) from e
        except voyage_error.VoyageError as e:
            raise ServiceError(message=f"Embeddings API error: {e}", details=self._details(intent)) from e

        embeddings = getattr(response, "embeddings", None) or []
        if len(embeddings) != 1 or not embeddings[0]:
            raise EmbeddingError(
                message="Voyage API returned no embedding",
                details=self._details(intent, status_code=200),
            )
        return [float(x) for x in cast("list[float]", embeddings[0])]

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def embed(self, text: str, intent: EmbeddingType) -> list[float]:
        """Embed one text with the given intent.

        Raises:
            EmbeddingError: If the API is unreachable, rejects the request, or
                returns a malformed vector
        """
        try:
            return await self._retry_handler.call_async(self._call_voyage_api, text, intent)
        except EmbeddingError:
            raise
        except (ServiceError, RateLimitError, TimeoutError, AuthenticationError) as e:
            raise EmbeddingError(message=f"Embedding failed: {e.message}", details=self._details(intent)) from e

    def get_model_dimensions(self) -> int:
        return MODEL_DIMENSIONS.get(self.model, 1024)
