"""
Bounded retry with exponential backoff for catalog fetches.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from accord.catalog.loader import TransientFetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    Retry policy configuration.

    The delay before retry n (1-based) is base_delay ** n seconds, capped
    at max_delay, plus a random jitter of up to jitter seconds.

    Attributes:
        max_attempts: Total attempts including the first
        base_delay: Backoff base in seconds
        max_delay: Upper bound of the backoff before jitter
        jitter: Maximum random spread added to every delay
        retry_on: Exception types that are retried
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.5
    retry_on: tuple[type[BaseException], ...] = (TransientFetchError,)
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """
        Calculate the backoff before the retry following attempt.

        Args:
            attempt: 1-based number of the attempt that just failed

        Returns:
            Delay in seconds
        """
        delay = min(self.base_delay ** attempt, self.max_delay)
        if self.jitter > 0:
            delay += self.rng.uniform(0, self.jitter)
        return delay

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, self.retry_on)

    def call(
        self,
        func: Callable[[], T],
        sleep: Callable[[float], Any] = time.sleep,
        description: str = "operation",
    ) -> T:
        """
        Run func until it succeeds, fails non-retryably, or attempts run out.

        Args:
            func: Zero-argument callable to run
            sleep: Sleep function (injectable for tests). A truthy return
                value means the wait was interrupted and ends the retries.
            description: What is being attempted, for logging

        Returns:
            The result of func

        Raises:
            The last exception raised by func
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return func()
            except Exception as e:
                if attempt >= self.max_attempts or not self.is_retryable(e):
                    logger.warning(
                        f"{description} failed after {attempt} attempt(s): {e}"
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.debug(
                    f"{description} attempt {attempt} failed ({e}); "
                    f"retrying in {delay:.2f}s"
                )
                if sleep(delay):
                    logger.info(f"{description} interrupted during backoff")
                    raise

        # Unreachable: the loop either returns or raises
        raise RuntimeError(f"{description} exhausted retries")
