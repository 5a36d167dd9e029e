"""Per-turn logging context.

A game session binds its ``session_id`` and the current ``turn`` for the
duration of a turn, so memory writes, searches and tool calls made while
handling it are attributable in Logfire without threading ids through every
call.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog


def get_log_context() -> dict[str, Any]:
    """Copy of the context currently merged into log events."""
    return dict(structlog.contextvars.get_contextvars())


@contextmanager
def bind_log_context(**context: Any) -> Iterator[None]:
    """Bind context for the duration of a block, restoring the previous values afterwards."""
    with structlog.contextvars.bound_contextvars(**context):
        yield
