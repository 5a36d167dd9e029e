"""Error logging decorator for service boundaries."""

import functools
import inspect
from collections.abc import Callable
from typing import Any, ParamSpec, TypeVar, cast

from .base import ApplicationError, ErrorLevel
from .error_context import ErrorContext
from .logging import get_logger

logger = get_logger(__name__)
P = ParamSpec("P")
T = TypeVar("T")


def _handle(func: Callable[..., Any], error: Exception, fallback_level: ErrorLevel, reraise: bool) -> None:
    """Log ``error`` with its context; ApplicationErrors at their own level, anything else at ``fallback_level``."""
    level = error.level if isinstance(error, ApplicationError) else fallback_level
    logger.log(
        level.to_logging_level(),
        f"{func.__qualname__} failed: {error}",
        error_context=ErrorContext(error).to_dict(),
        exc_info=not isinstance(error, ApplicationError),
    )
    if reraise:
        raise error


def with_error_handling(
    error_level: ErrorLevel = ErrorLevel.ERROR,
    reraise: bool = True,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Log failures of the decorated function or coroutine, then re-raise unless ``reraise`` is False.

    With ``reraise=False`` the call returns None on failure. The wrapper keeps
    the original signature so FastAPI dependency injection still sees it.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        wrapper: Callable[..., Any]

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
                try:
                    return await func(*args, **kwargs)  # type: ignore[misc]
                except Exception as e:
                    _handle(func, e, error_level, reraise)
                    return None

        else:

            @functools.wraps(func)
            def wrapper(*args: P.args, **kwargs: P.kwargs) -> Any:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    _handle(func, e, error_level, reraise)
                    return None

        wrapper.__signature__ = inspect.signature(func)  # type: ignore[attr-defined]
        return cast("Callable[P, T]", wrapper)

    return decorator
