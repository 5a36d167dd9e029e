"""Specific error types for the narrative memory application."""

from .base import (
    AIServiceErrorDetails,
    ApplicationError,
    ErrorCode,
    ErrorDetails,
    ErrorLevel,
    ServiceErrorDetails,
    ValidationErrorDetails,
    VectorStoreErrorDetails,
)


class ServiceError(ApplicationError):
    """Error from external service calls."""

    def __init__(
        self,
        message: str,
        details: ServiceErrorDetails | None = None,
        code: ErrorCode = ErrorCode.SERVICE_UNAVAILABLE,
    ):
        super().__init__(
            message=message,
            code=code,
            level=ErrorLevel.ERROR,
            details=details or ServiceErrorDetails(
                source="service",
                operation="external_call",
                service_name="unknown"
            )
        )


class AuthenticationError(ApplicationError):
    """Authentication-related errors."""

    def __init__(self, message: str, details: ErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.AUTHENTICATION_FAILED,
            level=ErrorLevel.ERROR,
            details=details
        )


class RateLimitError(ApplicationError):
    """Rate limiting errors."""

    def __init__(self, message: str, details: ServiceErrorDetails | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.RATE_LIMITED,
            level=ErrorLevel.WARNING,
            details=details
        )


class TimeoutError(ApplicationError):
    """Timeout errors."""

    def __init__(self, message: str, details: ErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.TIMEOUT,
            level=ErrorLevel.ERROR,
            details=details
        )


class EmbeddingError(ApplicationError):
    """The embedding provider was unreachable or returned a malformed vector."""

    def __init__(self, message: str, details: AIServiceErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.EMBEDDING_FAILED,
            level=ErrorLevel.ERROR,
            details=details
        )


class GenerationError(ApplicationError):
    """The generation service failed to produce a reply."""

    def __init__(self, message: str, details: AIServiceErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.MODEL_ERROR,
            level=ErrorLevel.ERROR,
            details=details
        )


class StoreConnectionError(ApplicationError):
    """The vector store backing a collection is unreachable."""

    def __init__(self, message: str, details: VectorStoreErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.STORE_UNAVAILABLE,
            level=ErrorLevel.ERROR,
            details=details
        )


class SearchError(ApplicationError):
    """A nearest-neighbour query against the vector store failed."""

    def __init__(self, message: str, details: VectorStoreErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.SEARCH_FAILED,
            level=ErrorLevel.ERROR,
            details=details
        )


class DimensionMismatchError(ApplicationError):
    """An embedding does not match the dimensionality fixed for its collection."""

    def __init__(
        self,
        message: str,
        expected: int,
        actual: int,
        details: ValidationErrorDetails | dict | None = None,
    ):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message=message,
            code=ErrorCode.DIMENSION_MISMATCH,
            level=ErrorLevel.WARNING,
            details=details
        )


class SchemaViolationError(ApplicationError):
    """A row does not conform to the column types fixed when its collection was created."""

    def __init__(self, message: str, details: ValidationErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.SCHEMA_VIOLATION,
            level=ErrorLevel.ERROR,
            details=details
        )


class InvalidFilterError(ApplicationError):
    """A search filter names an unknown field or carries an unusable value."""

    def __init__(self, message: str, details: ValidationErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.INVALID_INPUT,
            level=ErrorLevel.WARNING,
            details=details
        )


class ToolNotFoundError(ApplicationError):
    """The generation service requested a tool that is not registered."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(
            message=f"Tool not found: {tool_name}",
            code=ErrorCode.TOOL_NOT_FOUND,
            level=ErrorLevel.WARNING,
            details={"source": "memory_tools", "operation": "dispatch"},
        )
