"""
Circuit breakers guarding remote listing services.

A breaker opens after ``failure_threshold`` consecutive counted failures and
rejects calls until ``recovery_timeout`` has passed. It then lets exactly one
trial call through; the trial call's outcome closes the breaker or re-opens it.
Failures the caller caused (a bad cursor, a 4xx) can be excluded through the
``counts_as_failure`` predicate so they never trip the breaker.
"""

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from shared.logging import get_logger

FailurePredicate = Callable[[BaseException], bool]


class CircuitBreakerState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenException(Exception):
    """Raised instead of calling a service whose breaker is open."""

    def __init__(self, name: str, retry_in: float):
        super().__init__(f"Circuit breaker '{name}' is open; retry in {retry_in:.1f}s")
        self.name = name
        self.retry_in = retry_in


class CircuitBreaker:
    """Consecutive-failure breaker for one remote dependency."""

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        name: str = "default",
        counts_as_failure: Optional[FailurePredicate] = None,
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self.counts_as_failure = counts_as_failure
        self.logger = get_logger(f"circuit_breaker.{name}")

        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
        self._trial_in_flight = False

    def _admit(self) -> None:
        if self._state == CircuitBreakerState.CLOSED:
            return

        remaining = self.recovery_timeout - (time.monotonic() - self._opened_at)
        if self._state == CircuitBreakerState.OPEN and remaining <= 0:
            self._state = CircuitBreakerState.HALF_OPEN
            self.logger.info("Circuit breaker half-open, sending trial call")

        if self._state == CircuitBreakerState.HALF_OPEN and not self._trial_in_flight:
            self._trial_in_flight = True
            return

        raise CircuitBreakerOpenException(self.name, max(remaining, 0.0))

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Run ``func`` if the breaker admits it, recording the outcome."""
        self._admit()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if self.counts_as_failure is None or self.counts_as_failure(e):
                self._on_failure(e)
            else:
                self._on_success()
            raise
        finally:
            self._trial_in_flight = False

        self._on_success()
        return result

    def _on_success(self) -> None:
        if self._state != CircuitBreakerState.CLOSED:
            self.logger.info("Circuit breaker closed after successful trial call")
        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0

    def _on_failure(self, error: BaseException) -> None:
        self._failure_count += 1
        if self._state == CircuitBreakerState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitBreakerState.OPEN
            self._opened_at = time.monotonic()
            self.logger.warning(
                "Circuit breaker opened",
                failure_count=self._failure_count,
                threshold=self.failure_threshold,
                error=str(error),
            )

    def get_state(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
        }

    def is_open(self) -> bool:
        return self._state == CircuitBreakerState.OPEN


class CircuitBreakerManager:
    """Process-wide registry of named breakers."""

    def __init__(self):
        self.circuit_breakers: Dict[str, CircuitBreaker] = {}

    def get_circuit_breaker(self, name: str, **kwargs) -> CircuitBreaker:
        """Return the breaker called ``name``, creating it with ``kwargs`` on first use."""
        breaker = self.circuit_breakers.get(name)
        if breaker is None:
            breaker = self.circuit_breakers[name] = CircuitBreaker(name=name, **kwargs)
        return breaker

    def get_all_states(self) -> Dict[str, Dict[str, Any]]:
        return {name: breaker.get_state() for name, breaker in self.circuit_breakers.items()}


circuit_breaker_manager = CircuitBreakerManager()


def get_circuit_breaker(name: str, **kwargs) -> CircuitBreaker:
    """Get a circuit breaker from the global manager."""
    return circuit_breaker_manager.get_circuit_breaker(name, **kwargs)
