"""Async retry utilities for outbound HTTP operations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget plus exponential backoff schedule.

    The delay slept after attempt ``n`` (1-based) is
    ``backoff_base_seconds * exponential_base ** (n - 1)``; no delay follows
    the final attempt. ``sleep`` is injectable so tests can run the schedule
    without waiting.
    """

    max_attempts: int = 3
    backoff_base_seconds: float = 1.0
    exponential_base: float = 2.0
    sleep: SleepFn = field(default=asyncio.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_base_seconds < 0:
            raise ValueError("backoff_base_seconds must not be negative")

    def delay_for(self, attempt: int) -> float:
        return self.backoff_base_seconds * (self.exponential_base ** (attempt - 1))

    def delays(self) -> tuple[float, ...]:
        return tuple(self.delay_for(attempt) for attempt in range(1, self.max_attempts + 1))


async def with_exponential_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """Run ``operation`` until it succeeds or the policy's budget is spent.

    Only exceptions in ``retry_on`` are retried; anything else propagates on
    the attempt that raised it. After the last attempt the final retryable
    error is re-raised.
    """
    policy = policy or RetryPolicy()
    attempt = 1
    while True:
        try:
            return await operation()
        except retry_on as exc:
            if attempt >= policy.max_attempts:
                logger.error("Giving up after %s attempts", policy.max_attempts)
                raise
            sleep_for = policy.delay_for(attempt)
            logger.warning(
                "Retryable error (attempt %s/%s): %s; retrying in %.1fs",
                attempt,
                policy.max_attempts,
                exc,
                sleep_for,
            )
        await policy.sleep(sleep_for)
        attempt += 1


__all__ = ["RetryPolicy", "SleepFn", "with_exponential_backoff"]
