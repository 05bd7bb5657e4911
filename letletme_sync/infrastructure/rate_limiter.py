"""Token bucket rate limiter with lazy, step-wise refill."""

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable

from letletme_sync.errors import RateLimitExceeded

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TokenBucketRateLimiter:
    """Bounds outbound call volume to the upstream API.

    Tokens are refilled in discrete steps of ``tokens_per_interval`` every
    ``interval`` seconds. Refill is computed from the clock on each call, so
    there is no background timer. Every public method is synchronous: under
    asyncio, a refill and the following decrement can never be split by
    another task.
    """

    def __init__(
        self,
        capacity: int,
        tokens_per_interval: int,
        interval: float,
        clock: Clock = time.monotonic,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be greater than 0")
        if tokens_per_interval <= 0:
            raise ValueError("tokens_per_interval must be greater than 0")
        if interval <= 0:
            raise ValueError("interval must be greater than 0")

        self.capacity = capacity
        self.tokens_per_interval = tokens_per_interval
        self.interval = interval
        self._clock = clock
        self._tokens: float = float(capacity)
        self._last_refill_at = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last_refill_at
        if elapsed < self.interval:
            return

        elapsed_intervals = math.floor(elapsed / self.interval)
        self._tokens = min(
            float(self.capacity),
            self._tokens + elapsed_intervals * self.tokens_per_interval,
        )
        self._last_refill_at = now - (elapsed % self.interval)

    def try_consume(self, n: int = 1) -> bool:
        """Take ``n`` tokens if available. Never raises."""
        if n <= 0 or n > self.capacity:
            return False

        self._refill()
        if self._tokens >= n:
            self._tokens -= n
            return True
        return False

    def consume(self, n: int = 1) -> None:
        """Take ``n`` tokens or raise RateLimitExceeded."""
        if not self.try_consume(n):
            raise RateLimitExceeded(
                remaining_tokens=self._tokens,
                next_refill_in=self.next_refill_in(),
            )

    def get_available_tokens(self) -> float:
        self._refill()
        return self._tokens

    def get_next_refill_time(self) -> float:
        """Clock value at which the next refill step lands."""
        self._refill()
        return self._last_refill_at + self.interval

    def next_refill_in(self) -> float:
        return max(0.0, self.get_next_refill_time() - self._clock())

    async def acquire(
        self,
        n: int = 1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Wait, one refill step at a time, until ``n`` tokens are taken."""
        if n <= 0 or n > self.capacity:
            raise ValueError(f"cannot acquire {n} tokens from a bucket of {self.capacity}")

        while not self.try_consume(n):
            wait = self.next_refill_in()
            logger.debug(f"Rate limiter empty, waiting {wait:.3f}s for refill")
            await sleep(wait)
