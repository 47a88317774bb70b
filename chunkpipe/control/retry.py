"""Retry executor with capped linear back-off"""

import inspect
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar, Union
import logging

from .token import TaskToken
from ..exceptions import ProcessorError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Back-off configuration"""
    base_delay_ms: float = 1000
    max_delay_ms: float = 5000
    max_attempts: Optional[int] = None  # None retries until cancelled

    def __post_init__(self):
        if self.base_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("Retry delays must be non-negative")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, failures: int) -> float:
        """Delay after the given number of earlier failures: 0, 1s, 2s, ... capped"""
        return min(self.base_delay_ms * failures, self.max_delay_ms)


DEFAULT_POLICY = RetryPolicy()


async def execute_with_retry(operation: Callable[[], Union[T, Awaitable[T]]],
                             token: TaskToken,
                             policy: Optional[RetryPolicy] = None) -> T:
    """
    Run operation until it succeeds.

    Each attempt first honours cancellation and pause. Failures are retried
    after a token-aware delay, so pause or cancel wake the sleeper early.
    Only cancellation (or an exhausted max_attempts) ends the loop.
    """
    policy = policy or DEFAULT_POLICY
    failures = 0

    while True:
        token.check_cancelled()
        await token.wait_while_paused()
        token.check_cancelled()

        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            attempts = failures + 1
            if policy.max_attempts is not None and attempts >= policy.max_attempts:
                raise ProcessorError(
                    f"Operation failed after {attempts} attempts: {e}",
                    attempts=attempts
                ) from e

            delay = policy.delay_for(failures)
            failures += 1
            logger.warning(f"Attempt {attempts} failed ({e!r}), retrying in {delay:.0f}ms")
            await token.delay(delay)

