"""Structured logging: structlog loggers exported to Logfire, with per-turn context."""

from .context import bind_log_context, get_log_context
from .setup import get_logger, setup_logging

__all__ = ["bind_log_context", "get_log_context", "get_logger", "setup_logging"]
