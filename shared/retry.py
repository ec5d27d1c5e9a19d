"""
Retry with exponential backoff for calls to remote services.

Transport failures are always worth another attempt. Some application
errors are too (a rate limit, a 5xx from an overloaded upstream), so callers
can pass a predicate that inspects the exception before a retry is spent on
it.
"""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger

Retryable = Callable[[BaseException], bool]


@dataclass(frozen=True)
class RetryConfig:
    """Backoff schedule: attempt ``n`` waits ``base_delay * exponential_base ** (n - 1)``."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True

    def delay_after(self, attempt: int) -> float:
        delay = min(self.base_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay += random.uniform(-0.1, 0.1) * delay
        return max(0.0, delay)


class RetryError(Exception):
    """Every attempt failed; ``last_exception`` is the final failure."""

    def __init__(self, message: str, last_exception: BaseException, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def _always(exc: BaseException) -> bool:
    return True


def retry_on_exception(
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    config: Optional[RetryConfig] = None,
    *,
    retryable: Optional[Retryable] = None,
) -> Callable:
    """Retry an async callable on ``exceptions``.

    An exception listed in ``exceptions`` is retried unless ``retryable``
    rejects it, in which case it propagates untouched. When attempts run out
    the last failure is wrapped in ``RetryError``.
    """
    config = config or RetryConfig()
    should_retry = retryable or _always

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        name = getattr(func, "__qualname__", type(func).__name__)
        logger = get_logger(f"retry.{name}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            if config.max_attempts < 1:
                raise ValueError("max_attempts must be at least 1")

            attempt = 0
            while True:
                attempt += 1
                try:
                    result = await func(*args, **kwargs)
                except exceptions as e:
                    if not should_retry(e):
                        raise
                    if attempt >= config.max_attempts:
                        logger.error("Retries exhausted", attempts=attempt, error=str(e))
                        raise RetryError(
                            f"{name} failed after {attempt} attempts",
                            last_exception=e,
                            attempts=attempt
                        ) from e

                    delay = config.delay_after(attempt)
                    logger.warning("Attempt failed, backing off", attempt=attempt, delay=round(delay, 3), error=str(e))
                    await asyncio.sleep(delay)
                    continue

                if attempt > 1:
                    logger.info("Retry succeeded", attempt=attempt)
                return result

        return wrapper

    return decorator
