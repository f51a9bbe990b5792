"""
Circuit breaker guarding every database round-trip.

Repositories run their statements, and :func:`~simbank.db.transaction.atomic`
runs its commit, through :data:`db_circuit_breaker`.  Connection-level errors
are counted; once ``failure_threshold`` of them happen in a row the circuit
opens and calls fail fast with :class:`CircuitBreakerError` (mapped to 503)
until ``recovery_timeout`` has passed.  Then exactly one probe call is let
through: success closes the circuit, failure opens it again.

Domain errors and integrity violations are not connection failures and pass
through untouched.  Nothing here retries: a failed operation surfaces to the
caller immediately.
"""

import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Tuple, Type

from simbank.core.config import settings

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """The call was refused without touching the database."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit '{name}' is OPEN; retry after {retry_after:.1f}s")


class CircuitBreaker:
    """
    Async circuit breaker.

    ``expected_exceptions`` are the exception types that count as failures;
    anything else raised by the wrapped call is re-raised without changing
    the circuit.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions
        self.reset()

    def reset(self) -> None:
        """Forget all history and close the circuit."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = 0.0
        self._probe_in_flight = False

    @property
    def retry_after(self) -> float:
        """Seconds left before an OPEN circuit admits a probe."""
        remaining = self.recovery_timeout - (time.monotonic() - self._last_failure_time)
        return max(remaining, 0.0)

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self.retry_after == 0.0:
            self._transition(CircuitState.HALF_OPEN)
        return self._state

    def _transition(self, new_state: CircuitState) -> None:
        if new_state != self._state:
            logger.info(
                "Circuit '%s': %s -> %s (failures=%d)",
                self.name,
                self._state.value,
                new_state.value,
                self._failure_count,
            )
        self._state = new_state

    def _on_success(self) -> None:
        self._failure_count = 0
        self._success_count += 1
        self._transition(CircuitState.CLOSED)

    def _on_failure(self, exc: BaseException) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            logger.error(
                "Circuit '%s' opening for %.1fs after %s",
                self.name,
                self.recovery_timeout,
                type(exc).__name__,
            )
            self._transition(CircuitState.OPEN)
        else:
            logger.warning(
                "Circuit '%s' failure %d/%d: %s",
                self.name,
                self._failure_count,
                self.failure_threshold,
                exc,
            )

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """Await ``func(*args, **kwargs)`` unless the circuit refuses it."""
        state = self.state
        if state == CircuitState.OPEN:
            raise CircuitBreakerError(self.name, self.retry_after)
        if state == CircuitState.HALF_OPEN:
            if self._probe_in_flight:
                raise CircuitBreakerError(self.name, self.recovery_timeout)
            self._probe_in_flight = True

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions as exc:
            self._on_failure(exc)
            raise
        finally:
            if state == CircuitState.HALF_OPEN:
                self._probe_in_flight = False

        self._on_success()
        return result

    def get_status(self) -> dict:
        """Snapshot reported by ``GET /health``."""
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
    expected_exceptions=(ConnectionError, OSError, TimeoutError),
)
