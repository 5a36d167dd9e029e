from .circuit_breaker import CircuitBreaker, CircuitState, RetryWithCircuitBreaker
from .errors import (
    DimensionMismatchError,
    EmbeddingError,
    ErrorCode,
    ErrorLevel,
    GenerationError,
    InvalidFilterError,
    SchemaViolationError,
    SearchError,
    ServiceErrorDetails,
    StoreConnectionError,
    ToolNotFoundError,
)
