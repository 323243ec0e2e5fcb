"""
Fault-tolerance helpers for database access.

1. **Circuit Breaker** — every repository call goes through
   ``db_circuit_breaker``.  After ``CB_FAILURE_THRESHOLD`` consecutive
   connectivity failures the circuit opens and calls fail fast with
   :class:`CircuitBreakerError` until ``CB_RECOVERY_TIMEOUT`` has elapsed;
   then a single probe is let through (HALF_OPEN).

2. **Retry with Exponential Backoff** — the maturity sweeper wraps each
   per-investment transaction in :func:`retry_with_backoff` so a dropped
   connection does not turn into a missed accrual.  Retrying is only safe
   because the whole transaction was rolled back before the retry.
"""

import asyncio
import functools
import logging
import random
import time
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Type

from sqlalchemy.exc import OperationalError

from unitvest.core.config import settings

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Circuit Breaker
# ────────────────────────────────────────────────────────────────────────────


class CircuitState(str, Enum):
    """Possible states of a circuit breaker."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised when a call is rejected because the circuit is open."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker '{name}' is OPEN — failing fast. "
            f"Retry after {retry_after:.1f}s."
        )


class CircuitBreaker:
    """
    Async circuit breaker.

    Parameters
    ----------
    name : str
        Identifier used in logs and in the ``/health`` payload.
    failure_threshold : int
        Consecutive failures that open the circuit.
    recovery_timeout : float
        Seconds spent OPEN before a probe call is allowed.
    expected_exceptions : tuple
        Exception types that count as failures.  Anything else (integrity
        errors, domain exceptions) passes through without touching the state.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0.0
        self._success_count = 0

    @property
    def state(self) -> CircuitState:
        """Current state; an OPEN circuit turns HALF_OPEN once the timeout elapses."""
        if self._state == CircuitState.OPEN and self._seconds_since_failure() >= self.recovery_timeout:
            self._state = CircuitState.HALF_OPEN
            logger.info("Circuit '%s' → HALF_OPEN", self.name)
        return self._state

    def _seconds_since_failure(self) -> float:
        return time.monotonic() - self._last_failure_time

    def _record_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info(
                "Circuit '%s' → CLOSED after %d failures", self.name, self._failure_count
            )
        self._failure_count = 0
        self._success_count += 1
        self._state = CircuitState.CLOSED

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error(
                "Circuit '%s' → OPEN (%d consecutive failures); failing fast for %.1fs",
                self.name,
                self._failure_count,
                self.recovery_timeout,
            )
        else:
            logger.warning(
                "Circuit '%s' failure %d/%d",
                self.name,
                self._failure_count,
                self.failure_threshold,
            )

    def reset(self) -> None:
        """Force the circuit back to CLOSED (used by tests and operator tooling)."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time = 0.0

    async def call(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        """
        Await ``func(*args, **kwargs)`` through the breaker.

        Raises :class:`CircuitBreakerError` without calling ``func`` while OPEN.
        """
        if self.state == CircuitState.OPEN:
            retry_after = self.recovery_timeout - self._seconds_since_failure()
            raise CircuitBreakerError(self.name, max(retry_after, 0))

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions:
            self._record_failure()
            raise
        self._record_success()
        return result

    def get_status(self) -> dict:
        """Snapshot for the ``/health`` endpoint."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "success_count": self._success_count,
            "recovery_timeout_s": self.recovery_timeout,
        }


db_circuit_breaker = CircuitBreaker(
    name="database",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=(
        OperationalError,
        ConnectionError,
        OSError,
        TimeoutError,
    ),
)


# ────────────────────────────────────────────────────────────────────────────
# Retry with Exponential Backoff
# ────────────────────────────────────────────────────────────────────────────


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        ConnectionError,
        OSError,
        TimeoutError,
    ),
) -> Callable:
    """
    Decorator: retry an async function with exponential backoff.

    ``max_retries`` counts retries, not attempts (0 means a single call).
    The delay doubles after every failure, is capped at ``max_delay`` and,
    with ``jitter``, gets up to 50% added so concurrent sweeps spread out.
    Exceptions outside ``retryable_exceptions`` propagate immediately.

    Example::

        process = retry_with_backoff(max_retries=2, retryable_exceptions=(TransientStoreError,))(
            self._process_one
        )
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            last_exception: Optional[Exception] = None
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except retryable_exceptions as exc:
                    last_exception = exc
                    if attempt == max_retries:
                        logger.error(
                            "Giving up on %s after %d retries — %s: %s",
                            func.__qualname__,
                            max_retries,
                            type(exc).__name__,
                            exc,
                        )
                        break
                    actual_delay = min(delay, max_delay)
                    if jitter:
                        actual_delay += random.uniform(0, actual_delay * 0.5)
                    logger.warning(
                        "Retry %d/%d for %s in %.2fs — %s: %s",
                        attempt + 1,
                        max_retries,
                        func.__qualname__,
                        actual_delay,
                        type(exc).__name__,
                        exc,
                    )
                    await asyncio.sleep(actual_delay)
                    delay *= 2

            raise last_exception  # type: ignore[misc]

        return wrapper

    return decorator
