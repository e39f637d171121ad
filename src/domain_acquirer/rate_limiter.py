"""
Rate Limiter module for registrar access.

All calls go to one registrar account, so access is serialized through a
single lock. Within the lock the limiter waits until every applicable rule
(per-command window, global window, minimum spacing) allows the next call.
"""

import asyncio
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from domain_acquirer.config import RateLimitConfig, RateLimitRule


@dataclass
class RateLimitStatus:
    """Result of a rate limit check."""

    allowed: bool
    wait_seconds: float
    reason: Optional[str] = None


class RateLimiter:
    """
    Serializes registrar calls and keeps them within configured limits.

    Usage:
        async with rate_limiter.acquire("search") as status:
            response = await do_request()
    """

    ADAPTIVE_DELAY_BASE = 2.0
    MAX_ADAPTIVE_DELAY = 300.0
    DEFAULT_ERROR_DELAY = 5.0

    def __init__(self, config: RateLimitConfig) -> None:
        self._config = config
        self._request_times: dict[str, list[float]] = defaultdict(list)
        self._lock: Optional[asyncio.Lock] = None
        self._consecutive_errors: dict[str, int] = defaultdict(int)
        self._penalty_until = 0.0

    def _get_lock(self) -> asyncio.Lock:
        # Created lazily so the limiter can be built outside a running loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def locked(self) -> bool:
        return self._lock is not None and self._lock.locked()

    @asynccontextmanager
    async def acquire(self, command: str) -> AsyncIterator[RateLimitStatus]:
        """
        Hold the account lock for one registrar call.

        Waits inside the lock until the call is allowed, records the call and
        yields the status describing any wait that was applied.
        """
        async with self._get_lock():
            waited = 0.0
            reason = None
            while True:
                wait_seconds, wait_reason = self.check(command)
                if wait_seconds <= 0:
                    break
                waited += wait_seconds
                reason = wait_reason
                await asyncio.sleep(wait_seconds)

            self.record_request(command)
            yield RateLimitStatus(allowed=True, wait_seconds=waited, reason=reason)

    def check(self, command: str) -> tuple[float, Optional[str]]:
        """
        Calculate the wait required before ``command`` may run.

        Returns:
            Tuple of (wait_seconds, reason)
        """
        current_time = time.monotonic()
        max_wait = 0.0
        wait_reason = None

        if self._penalty_until > current_time:
            max_wait = self._penalty_until - current_time
            wait_reason = "Adaptive delay after registrar throttling"

        rule = self._config.per_command.get(command)
        if rule is not None:
            wait, reason = self._check_rule(f"command:{command}", rule, current_time)
            if wait > max_wait:
                max_wait, wait_reason = wait, reason

        if self._config.global_limit:
            wait, reason = self._check_rule("global", self._config.global_limit, current_time)
            if wait > max_wait:
                max_wait, wait_reason = wait, reason

        return max_wait, wait_reason

    def _check_rule(
        self, key: str, rule: RateLimitRule, current_time: float
    ) -> tuple[float, Optional[str]]:
        window_start = current_time - rule.window_seconds
        self._request_times[key] = [
            t for t in self._request_times[key] if t > window_start
        ]
        recent = self._request_times[key]

        if len(recent) >= rule.max_requests:
            wait_until = min(recent) + rule.window_seconds
            return (
                max(0.0, wait_until - current_time),
                f"Rate limit reached for {key}: {len(recent)}/{rule.max_requests}",
            )

        if rule.min_delay_seconds > 0 and recent:
            since_last = current_time - max(recent)
            if since_last < rule.min_delay_seconds:
                return rule.min_delay_seconds - since_last, f"Minimum delay for {key}"

        return 0.0, None

    def record_request(self, command: str) -> None:
        """Record that a call to ``command`` is being made."""
        current_time = time.monotonic()

        if command in self._config.per_command:
            self._request_times[f"command:{command}"].append(current_time)

        if self._config.global_limit:
            self._request_times["global"].append(current_time)

    def apply_adaptive_delay(self, command: str, http_status: int) -> float:
        """
        Back off after a throttling response (HTTP 429 or 503).

        delay = base_delay * 2 ^ (consecutive_errors - 1), capped at
        MAX_ADAPTIVE_DELAY. The delay is applied to the next ``acquire``.
        """
        if http_status not in (429, 503):
            return 0.0

        self._consecutive_errors[command] += 1
        consecutive = self._consecutive_errors[command]

        base_delay = self.DEFAULT_ERROR_DELAY
        rule = self._config.per_command.get(command)
        if rule is not None:
            base_delay = max(base_delay, rule.min_delay_seconds)

        delay = min(
            base_delay * (self.ADAPTIVE_DELAY_BASE ** (consecutive - 1)),
            self.MAX_ADAPTIVE_DELAY,
        )
        self._penalty_until = max(self._penalty_until, time.monotonic() + delay)
        return delay

    def reset_error_count(self, command: str) -> None:
        self._consecutive_errors[command] = 0
