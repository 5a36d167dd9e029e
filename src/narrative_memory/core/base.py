"""Error taxonomy shared by every layer.

Each ``ApplicationError`` carries a stable numeric code, a severity and a
structured details model. Details models are recorded in full by Logfire.
"""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from logfire.integrations.pydantic import PluginSettings
from pydantic import BaseModel, ConfigDict, Field, field_serializer


class ErrorLevel(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging_level(self) -> int:
        return logging.getLevelNamesMapping()[self.name]


class ErrorCode(str, Enum):
    """Stable codes returned to API and websocket clients."""

    # Requests (1xxx)
    INVALID_INPUT = "1002"
    TIMEOUT = "1007"

    # Upstream APIs (2xxx)
    AUTHENTICATION_FAILED = "2001"
    RATE_LIMITED = "2003"
    CIRCUIT_OPEN = "2005"

    # Memory store (3xxx)
    STORE_UNAVAILABLE = "3001"
    SEARCH_FAILED = "3002"
    SCHEMA_VIOLATION = "3003"
    DIMENSION_MISMATCH = "3004"

    # Models (4xxx)
    MODEL_ERROR = "4001"
    EMBEDDING_FAILED = "4003"

    # Infrastructure (5xxx)
    SERVICE_UNAVAILABLE = "5002"

    # Game loop (6xxx)
    TOOL_NOT_FOUND = "6001"


class ErrorDetails(BaseModel, plugin_settings=PluginSettings(logfire={"record": "all"})):
    """Where an error happened. Unknown keys are kept so ad-hoc context survives."""

    model_config = ConfigDict(extra="allow")

    source: str = Field(description="Component or module where the error occurred")
    operation: str = Field(description="Operation being performed when the error occurred")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), description="When the error occurred")

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return timestamp.isoformat()


class ValidationErrorDetails(ErrorDetails):
    """A value that broke a schema, filter or argument constraint."""

    field: str | None = Field(None, description="Column, filter or argument that failed validation")
    actual_value: Any = Field(None, description="Offending value, truncated where large")
    expected_type: str | None = Field(None, description="Expected column type or format")
    constraint: str | None = Field(None, description="Constraint that was violated")


class ServiceErrorDetails(ErrorDetails):
    """A failed call to an external service."""

    service_name: str = Field(description="Name of the service that failed")
    endpoint: str | None = Field(None, description="Service endpoint or URI")
    status_code: int | None = Field(None, description="HTTP or service status code")


class VectorStoreErrorDetails(ServiceErrorDetails):
    collection: str | None = Field(None, description="Memory collection name")
    query_type: str | None = Field(None, description="Index operation (append, search, bootstrap)")


class AIServiceErrorDetails(ServiceErrorDetails):
    model_name: str | None = Field(None, description="Embedding or generation model")
    input_type: str | None = Field(None, description="Embedding intent or generation mode")


class ApplicationError(Exception):
    """Base class for all application errors.

    ``details`` may be a details model or a plain mapping; a mapping is
    validated into ``ErrorDetails`` with ``source`` and ``operation``
    defaulting to ``"unknown"``.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        level: ErrorLevel = ErrorLevel.ERROR,
        details: ErrorDetails | dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.level = level

        if isinstance(details, ErrorDetails):
            self.details = details
        else:
            self.details = ErrorDetails.model_validate({"source": "unknown", "operation": "unknown", **(details or {})})

        super().__init__(message)
