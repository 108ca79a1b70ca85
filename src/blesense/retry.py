"""
Retry policy shared by connect, read and subscribe.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from .errors import RadioError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures worth another attempt. Anything else propagates immediately.
RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (RadioError, asyncio.TimeoutError)


class RetryExhausted(Exception):
    """Raised by RetryPolicy.run when every attempt failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


async def with_timeout(awaitable: Awaitable[T], timeout: Optional[float]) -> T:
    """Await with a timeout in seconds, None for no bound."""
    if timeout is None:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout)


def exponential_backoff(base: float = 2.0) -> Callable[[int], float]:
    """Delay of base ** attempt seconds (2, 4, 8 for base 2)."""
    def backoff(attempt: int) -> float:
        return base ** attempt
    return backoff


def fixed_backoff(delay: float) -> Callable[[int], float]:
    """Same delay after every attempt."""
    def backoff(attempt: int) -> float:
        return delay
    return backoff


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget, backoff and per-attempt timeout.

    Attributes:
        max_attempts: Number of attempts before giving up
        backoff: Maps the 1-based attempt number to the delay that follows it
        sleep_after_final: Also back off after the last failed attempt
        operation_timeout: Bound on each attempt in seconds, None for no bound
        sleep: Coroutine used to wait between attempts
    """
    max_attempts: int = 3
    backoff: Callable[[int], float] = exponential_backoff()
    sleep_after_final: bool = False
    operation_timeout: Optional[float] = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def exponential(cls, max_attempts: int = 3, base: float = 2.0, **kwargs) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, backoff=exponential_backoff(base), **kwargs)

    @classmethod
    def fixed(cls, max_attempts: int = 3, delay: float = 2.0, **kwargs) -> "RetryPolicy":
        return cls(max_attempts=max_attempts, backoff=fixed_backoff(delay), **kwargs)

    def delays(self) -> Tuple[float, ...]:
        """Delays this policy waits when every attempt fails."""
        count = self.max_attempts if self.sleep_after_final else self.max_attempts - 1
        return tuple(self.backoff(attempt) for attempt in range(1, count + 1))

    async def bounded(self, awaitable: Awaitable[T]) -> T:
        """Await with this policy's per-attempt timeout."""
        return await with_timeout(awaitable, self.operation_timeout)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str = "operation",
        bound: bool = True,
    ) -> T:
        """
        Run `operation` until it succeeds or the attempt budget is spent.

        Args:
            operation: Factory returning a fresh awaitable per attempt
            label: Used in log messages
            bound: Apply operation_timeout to each attempt. Pass False when
                the operation bounds its own radio calls.

        Returns:
            The result of the first successful attempt.

        Raises:
            RetryExhausted: If every attempt failed with a retryable error.
        """
        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                if bound:
                    return await self.bounded(operation())
                return await operation()
            except RETRYABLE_ERRORS as err:
                last_error = err
                logger.warning(
                    "Attempt %d/%d: %s failed: %r", attempt, self.max_attempts, label, err
                )
            if attempt < self.max_attempts or self.sleep_after_final:
                await self.sleep(self.backoff(attempt))
        raise RetryExhausted(self.max_attempts, last_error)
