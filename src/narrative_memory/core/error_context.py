"""Error context for logs and client payloads.

A trace id ties the log record of a failure to what the player or API
client was shown.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from .base import ApplicationError


class ErrorContext:
    def __init__(self, error: Exception, trace_id: str | None = None, **context: Any):
        self.error = error
        self.trace_id = trace_id or uuid4().hex
        self.timestamp = datetime.now(UTC)
        self.context = context

    @property
    def code(self) -> str | None:
        return self.error.code.value if isinstance(self.error, ApplicationError) else None

    def to_dict(self) -> dict[str, Any]:
        """Full context for structured logging: error, details model and caller context (session, turn, path)."""
        result: dict[str, Any] = {
            "error_type": type(self.error).__name__,
            "error_message": str(self.error),
            "trace_id": self.trace_id,
            "timestamp": self.timestamp.isoformat(),
            **self.context,
        }
        if isinstance(self.error, ApplicationError):
            result["error_code"] = self.code
            result["error_level"] = self.error.level.value
            result["details"] = self.error.details.model_dump(mode="json")
        return result

    def to_payload(self) -> dict[str, Any]:
        """What a client sees: the message, the code and the trace id, nothing internal."""
        payload: dict[str, Any] = {"error": str(self.error), "trace_id": self.trace_id}
        if self.code is not None:
            payload["error_code"] = self.code
        return payload
