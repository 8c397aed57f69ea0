"""Bounded exponential-backoff retries for external calls."""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from vocabai.errors import NON_RETRYABLE, classify_exception
from vocabai.monitoring import api_retries

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Retry a coroutine factory with delays of ``base_delay * 2 ** (attempt - 1)``.

    Authentication and validation failures are raised on the first attempt.
    Anything else is retried until ``max_attempts`` calls have failed, then
    the last error is raised.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be positive")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given failed attempt (1-based)."""
        return self.base_delay * 2 ** (attempt - 1)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        last_error: Exception
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                last_error = e
                error_type = classify_exception(e)
                if error_type in NON_RETRYABLE:
                    logger.info("Not retrying %s error: %s", error_type.value, e)
                    raise
                if attempt == self.max_attempts:
                    break
                delay = self.delay_for(attempt)
                logger.warning(
                    "Attempt %d/%d failed with %s error, retrying in %.2fs: %s",
                    attempt,
                    self.max_attempts,
                    error_type.value,
                    delay,
                    e,
                )
                api_retries.labels(error_type=error_type.value).inc()
                await self._sleep(delay)

        logger.error("Giving up after %d attempts: %s", self.max_attempts, last_error)
        raise last_error
