"""
Retry Manager for idempotent registrar lookups.

Availability searches and account listings may be repeated safely, so
transient failures (timeouts, throttling, server errors) are retried with
exponential backoff. Registration and forwarding calls never go through
this manager.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from .config import RetryConfig
from .exceptions import AcquisitionError

T = TypeVar("T")


@dataclass
class RetryOutcome(Generic[T]):
    """What a retried operation ended with."""

    success: bool
    result: Optional[T]
    attempts: int
    last_error: Optional[Exception]


class RetryManager:
    """Runs an async operation again after transient failures."""

    def __init__(self, config: RetryConfig) -> None:
        self._config = config

    @property
    def config(self) -> RetryConfig:
        return self._config

    @property
    def max_attempts(self) -> int:
        return self._config.max_retries + 1

    def calculate_delay(self, attempt: int) -> float:
        """
        Wait time before retry number ``attempt`` (0-indexed).

        delay(n) = base_delay * 2^n, capped at max_delay.
        """
        return min(
            self._config.base_delay_seconds * 2 ** attempt,
            self._config.max_delay_seconds,
        )

    def is_retryable_error(self, error: Exception) -> bool:
        """Only coded errors listed in ``retryable_errors`` are retried."""
        return isinstance(error, AcquisitionError) and error.code in self._config.retryable_errors

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        is_retryable: Optional[Callable[[Exception], bool]] = None,
    ) -> RetryOutcome[T]:
        """
        Await ``operation`` until it succeeds, fails permanently or the
        attempts (max_retries + 1) are used up.

        Args:
            operation: Zero-argument coroutine factory
            is_retryable: Decides whether an exception is retried; defaults
                          to ``is_retryable_error``
        """
        should_retry = is_retryable or self.is_retryable_error
        error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                value = await operation()
            except Exception as e:
                error = e
                if attempt == self.max_attempts or not should_retry(e):
                    return RetryOutcome(False, None, attempt, error)
                await asyncio.sleep(self.calculate_delay(attempt - 1))
            else:
                return RetryOutcome(True, value, attempt, None)

        return RetryOutcome(False, None, self.max_attempts, error)

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` with retries and re-raise the last error on failure."""
        outcome = await self.execute_with_retry(operation)
        if not outcome.success:
            assert outcome.last_error is not None
            raise outcome.last_error
        return outcome.result  # type: ignore[return-value]
