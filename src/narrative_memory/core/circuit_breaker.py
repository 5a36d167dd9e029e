"""Circuit breaker and retry policy for calls to external model APIs.

The embedding provider sits on the path of every memory write and every
turn's recall. When it is down, failing fast lets the game loop narrate
without memory instead of stalling each turn on timeouts.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterator
from enum import Enum
from typing import Any, TypeVar

from narrative_memory.core.base import ErrorCode, ServiceErrorDetails
from narrative_memory.core.errors import RateLimitError, ServiceError, TimeoutError
from narrative_memory.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"  # calls go through
    OPEN = "open"  # calls are rejected until the recovery timeout elapses
    HALF_OPEN = "half_open"  # trial calls decide whether to close or reopen


class CircuitBreaker:
    """Counts consecutive failures of one upstream service.

    ``failure_threshold`` consecutive failures of an ``expected_exception_types``
    type open the circuit. After ``recovery_timeout`` seconds the next call is
    let through as a trial; ``success_threshold`` trial successes close the
    circuit, and any trial failure reopens it. Other exceptions pass through
    without being counted.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        expected_exception_types: tuple[type[Exception], ...] = (Exception,),
        success_threshold: int = 2,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception_types = expected_exception_types
        self.success_threshold = success_threshold
        self._clock = clock

        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at: float | None = None
        self.last_exception: Exception | None = None

    def _transition(self, state: CircuitState, **fields: Any) -> None:
        if state is self.state:
            return
        log = logger.warning if state is CircuitState.OPEN else logger.info
        log("Circuit breaker state changed", circuit=self.name, previous=self.state.value, state=state.value, **fields)
        self.state = state
        self.success_count = 0
        if state is CircuitState.OPEN:
            self.opened_at = self._clock()
        elif state is CircuitState.CLOSED:
            self.failure_count = 0
            self.opened_at = None
            self.last_exception = None

    @property
    def retry_after(self) -> float:
        """Seconds until an open circuit admits a trial call."""
        if self.state is not CircuitState.OPEN or self.opened_at is None:
            return 0.0
        return max(0.0, self.recovery_timeout - (self._clock() - self.opened_at))

    def _admit(self) -> None:
        if self.state is CircuitState.OPEN:
            if self.retry_after > 0:
                raise ServiceError(
                    message=f"{self.name} is unavailable; retrying in {self.retry_after:.0f}s"
                    + (f" (last error: {self.last_exception})" if self.last_exception else ""),
                    code=ErrorCode.CIRCUIT_OPEN,
                    details=ServiceErrorDetails(
                        source="circuit_breaker",
                        operation="admit",
                        service_name=self.name,
                        status_code=503,
                    ),
                )
            self._transition(CircuitState.HALF_OPEN)

    def _on_success(self) -> None:
        if self.state is CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                self._transition(CircuitState.CLOSED)
        else:
            self.failure_count = 0

    def _on_failure(self, error: Exception) -> None:
        self.last_exception = error
        self.failure_count += 1
        if self.state is CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self._transition(CircuitState.OPEN, failures=self.failure_count, error=str(error))

    async def call_async(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``func`` unless the circuit is open.

        Raises:
            ServiceError: with ``CIRCUIT_OPEN`` while the circuit rejects calls
        """
        self._admit()
        try:
            result = await func(*args, **kwargs)
        except self.expected_exception_types as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def get_state(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "retry_after": round(self.retry_after, 3),
            "last_exception": str(self.last_exception) if self.last_exception else None,
        }


class RetryWithCircuitBreaker:
    """Retries transient failures (rate limits, timeouts) with exponential backoff, through a breaker.

    An open circuit is not transient: its ``ServiceError`` is raised at once.
    """

    def __init__(
        self,
        circuit_breaker: CircuitBreaker,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        backoff_factor: float = 2.0,
        max_delay: float = 60.0,
        retryable_exceptions: tuple[type[Exception], ...] = (RateLimitError, TimeoutError),
    ):
        self.circuit_breaker = circuit_breaker
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.backoff_factor = backoff_factor
        self.max_delay = max_delay
        self.retryable_exceptions = retryable_exceptions

    def delays(self) -> Iterator[float]:
        """Sleep before each retry; ``max_retries`` attempts means ``max_retries - 1`` sleeps."""
        delay = self.initial_delay
        for _ in range(self.max_retries - 1):
            yield delay
            delay = min(delay * self.backoff_factor, self.max_delay)

    async def call_async(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``func`` up to ``max_retries`` times.

        Raises:
            The last retryable error once attempts are exhausted, the first
            non-retryable one, or ``ServiceError`` if the circuit is open
        """
        for attempt, delay in enumerate(self.delays(), start=1):
            try:
                return await self.circuit_breaker.call_async(func, *args, **kwargs)
            except self.retryable_exceptions as e:
                logger.warning(
                    "Transient failure, retrying",
                    circuit=self.circuit_breaker.name,
                    attempt=attempt,
                    delay=delay,
                    error=e,
                )
                await asyncio.sleep(delay)
        return await self.circuit_breaker.call_async(func, *args, **kwargs)
