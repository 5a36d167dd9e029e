"""structlog configuration with Logfire export.

Both structlog loggers and standard library loggers (neo4j, httpx, uvicorn)
render through one processor chain. Logfire itself is configured by the
entry point (``logfire.configure``); here it is only a processor.
"""

import logging
import sys

import logfire
import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.types import EventDict, Processor, WrappedLogger
from structlog.typing import FilteringBoundLogger

# Libraries that log every query or request at INFO
NOISY_LOGGERS = {"neo4j": logging.WARNING, "httpx": logging.WARNING, "httpcore": logging.WARNING}

VECTOR_KEYS = ("embedding", "query_vector", "vector")


def summarize_vectors(_logger: WrappedLogger, _method_name: str, event_dict: EventDict) -> EventDict:
    """Replace embedding vectors with their length; a 1024-float list is not a log line."""
    for key in VECTOR_KEYS:
        value = event_dict.get(key)
        if isinstance(value, list | tuple):
            event_dict[key] = f"<{len(value)} floats>"
    return event_dict


def add_error_type(_logger: WrappedLogger, _method_name: str, event_dict: EventDict) -> EventDict:
    error = event_dict.get("error")
    if isinstance(error, BaseException):
        event_dict["error_type"] = type(error).__name__
    return event_dict


def setup_logging(level: int = logging.INFO, colors: bool = True) -> None:
    """Configure structlog and route standard library logging through it.

    Session and turn ids bound with ``bind_log_context`` are merged into
    every event.
    """
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        CallsiteParameterAdder(
            parameters=[
                CallsiteParameter.MODULE,
                CallsiteParameter.FUNC_NAME,
                CallsiteParameter.LINENO,
            ]
        ),
        summarize_vectors,
        add_error_type,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    renderer = structlog.dev.ConsoleRenderer(colors=colors)

    structlog.configure(
        # Logfire must see the event before it is rendered to text
        processors=[*shared, logfire.StructlogProcessor(), renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared,
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    for name, floor in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, floor))


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    return structlog.get_logger(name)
