"""Bounded retry with linearly increasing delay.

:func:`retry` runs a zero-argument coroutine function up to
``policy.attempts`` times. After failed attempt *n* (1-indexed) it sleeps
``policy.delay * n`` seconds before the next one, so ``attempts=3,
delay=0.1`` waits 0.1 s and then 0.2 s. The final failure is re-raised
unchanged.

Cancellation is never retried: :class:`asyncio.CancelledError` is not an
:class:`Exception`, so cancelling the task during an attempt or a delay
stops the loop before the next attempt starts.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional, TypeVar

from tearoute.models import RetryConfig

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration consumed by :func:`retry`.

    Attributes:
        attempts: Total attempts, at least 1.
        delay: Base delay in seconds, at least 0.
    """

    attempts: int = 3
    delay: float = 1.0

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")

    @classmethod
    def from_config(cls, config: RetryConfig) -> RetryPolicy:
        return cls(attempts=config.attempts, delay=config.delay)

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds after the failed attempt with 0-based index *attempt*."""
        return self.delay * (attempt + 1)


async def retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    should_retry: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
) -> T:
    """Await ``operation()`` until it succeeds or the attempts run out.

    Args:
        operation: Zero-argument coroutine function producing the result.
        policy: Attempt count and base delay.
        should_retry: Returns ``False`` for failures that must not be
            retried; those propagate at once. Defaults to retrying all.
        on_retry: Called as ``on_retry(attempt, exc, delay)`` before each
            delay, with the 1-based number of the attempt that failed.

    Returns:
        The first successful result.

    Raises:
        Exception: The failure of the last attempt, or the first failure
            rejected by *should_retry*.
    """
    for attempt in range(policy.attempts):
        try:
            return await operation()
        except Exception as exc:
            last_attempt = attempt == policy.attempts - 1
            if last_attempt or (should_retry is not None and not should_retry(exc)):
                raise
            delay = policy.delay_for(attempt)
            if on_retry is not None:
                on_retry(attempt + 1, exc, delay)
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
