"""
Core Module - Retry Policy.

============================================================
PURPOSE
============================================================
Bounded retry with increasing backoff around fallible updates.

CRITICAL CONSTRAINTS:
- Fixed number of attempts (3)
- Delay starts at 1 unit and grows by 2 units per failure
  (1, 3, 5, ... units between consecutive attempts)
- Only errors the operation marks as retryable are retried

============================================================
TWO RESULT CHANNELS
============================================================
An attempt reports through AttemptResult:

- retry_error: "try again" (unique-constraint race on insert)
- error:       the real outcome for the end caller; stops the
               loop immediately without counting as a retry

The policy returns a RetryResult carrying both channels, so a
caller can tell "gave up after retries" from "failed for real".

============================================================
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterator, Optional, TypeVar

from .exceptions import MetricsException


logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass
class AttemptResult(Generic[T]):
    """Outcome of one attempt."""

    value: Optional[T] = None
    retry_error: Optional[Exception] = None
    error: Optional[Exception] = None

    @property
    def should_retry(self) -> bool:
        return self.retry_error is not None


@dataclass
class RetryResult(Generic[T]):
    """Outcome of the whole retry loop."""

    value: Optional[T] = None
    retry_error: Optional[Exception] = None
    """Last retryable error, set only when every attempt failed."""

    error: Optional[Exception] = None
    """Non-retryable error reported by the final attempt."""

    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.retry_error is None and self.error is None


def attempt_store_call(operation: Callable[[], T]) -> AttemptResult[T]:
    """
    Run a store call and sort its failure into a channel.

    Retryable metrics errors go to retry_error, every other
    metrics error goes to error. Unexpected exceptions propagate.
    """
    try:
        return AttemptResult(value=operation())
    except MetricsException as e:
        if e.is_retryable:
            return AttemptResult(retry_error=e)
        return AttemptResult(error=e)


# ============================================================
# RETRY POLICY
# ============================================================

@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry configuration and loop.
    """

    attempts: int = 3
    """Total number of attempts."""

    initial_delay: float = 1.0
    """Delay in units before the second attempt."""

    delay_step: float = 2.0
    """Units added to the delay after each failed attempt."""

    time_unit: float = 1.0
    """Seconds per unit."""

    def delays(self) -> Iterator[float]:
        """Seconds to wait before attempts 2..N."""
        delay = self.initial_delay
        for _ in range(self.attempts - 1):
            yield delay * self.time_unit
            delay += self.delay_step

    def run(
        self,
        operation: Callable[[], AttemptResult[T]],
        warning: str = "operation failed",
        sleep: Callable[[float], None] = time.sleep,
    ) -> RetryResult[T]:
        """
        Run a blocking operation under the policy.

        Args:
            operation: Zero-argument callable returning AttemptResult
            warning: Message logged on each failed attempt
            sleep: Sleep function (injectable for tests)
        """
        delays = self.delays()
        attempt = 0
        while True:
            attempt += 1
            result = operation()
            if not result.should_retry:
                return RetryResult(value=result.value, error=result.error, attempts=attempt)

            logger.warning(f"{warning}: attempt={attempt} error={result.retry_error}")
            delay = next(delays, None)
            if delay is None:
                return RetryResult(retry_error=result.retry_error, attempts=attempt)
            sleep(delay)

    async def run_async(
        self,
        operation: Callable[[], Awaitable[AttemptResult[T]]],
        warning: str = "operation failed",
    ) -> RetryResult[T]:
        """
        Run a coroutine operation under the policy.

        Args:
            operation: Zero-argument coroutine function returning AttemptResult
            warning: Message logged on each failed attempt
        """
        delays = self.delays()
        attempt = 0
        while True:
            attempt += 1
            result = await operation()
            if not result.should_retry:
                return RetryResult(value=result.value, error=result.error, attempts=attempt)

            logger.warning(f"{warning}: attempt={attempt} error={result.retry_error}")
            delay = next(delays, None)
            if delay is None:
                return RetryResult(retry_error=result.retry_error, attempts=attempt)
            await asyncio.sleep(delay)
