"""
Global token-bucket throttle shared by every outbound fetch.

Tokens refill continuously at ``refill_rate`` per second up to ``capacity``.
``acquire()`` never refuses a caller; it only delays it until a token is
available. Cache hits never touch the limiter.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from .config import RATE_LIMIT_CAPACITY, RATE_LIMIT_PER_MINUTE

logger = logging.getLogger(__name__)


class TokenBucketRateLimiter:
    """
    Async token bucket.

    The clock and sleep functions are injectable so tests can drive time
    by hand. All reads and writes of the token count happen under one
    ``asyncio.Lock``; waiting happens outside of it.
    """

    def __init__(
        self,
        capacity: float = RATE_LIMIT_CAPACITY,
        refill_rate: float = RATE_LIMIT_PER_MINUTE / 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")
        self.capacity = float(capacity)
        self.refill_rate = float(refill_rate)
        self.tokens = float(capacity)
        self._clock = clock
        self._sleep = sleep
        self.last_refill = clock()
        self._lock: Optional[asyncio.Lock] = None

        # Stats for the dashboard
        self.total_acquired = 0
        self.total_wait_seconds = 0.0

    @property
    def lock(self) -> asyncio.Lock:
        # Created lazily so the limiter can be built outside a running loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _refill(self):
        now = self._clock()
        elapsed = now - self.last_refill
        if elapsed > 0:
            self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = max(now, self.last_refill)

    async def acquire(self):
        """Wait until one token is available, then take it."""
        while True:
            async with self.lock:
                self._refill()
                if self.tokens >= 1:
                    self.tokens -= 1
                    self.total_acquired += 1
                    return
                wait_seconds = (1 - self.tokens) / self.refill_rate

            # Other callers may take the refilled token first, so re-check after waking
            logger.debug("Rate limiter empty, waiting %.2fs", wait_seconds)
            self.total_wait_seconds += wait_seconds
            await self._sleep(wait_seconds)

    def available(self) -> float:
        """Current token count after refill (for status displays)."""
        self._refill()
        return self.tokens
