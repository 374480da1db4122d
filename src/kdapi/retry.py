"""
Per-URL retry with exponential backoff.

Transport errors, non-2xx responses and implausible bodies each consume one
attempt. 429 responses wait for the server's Retry-After hint (or the same
backoff) and are counted against a separate, larger budget.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Set, TypeVar

from .config import (
    BACKOFF_FACTOR,
    MAX_RATE_LIMITED_RETRIES,
    MAX_RETRY_AFTER,
    RETRY_ATTEMPTS,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)
from .errors import (
    ContentValidationError,
    PermanentFetchError,
    RateLimitedError,
    TransportError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(
    attempt: int,
    base_delay: float = RETRY_BASE_DELAY,
    cap: float = RETRY_MAX_DELAY,
    factor: float = BACKOFF_FACTOR,
) -> float:
    """Delay before retrying after failed attempt number ``attempt`` (0-based)."""
    if attempt < 0:
        attempt = 0
    try:
        delay = base_delay * (factor ** attempt)
    except OverflowError:
        return cap
    return min(delay, cap)


@dataclass
class FetchAttemptRecord:
    """Failure history of one URL. Lives only for the session."""
    url: str
    failure_count: int = 0
    last_attempt: float = 0.0


class RetryController:
    """
    Runs a fetch attempt until it succeeds or the budget is spent.

    Keeps the session's failure records: cleared on success, and URLs
    that exhausted their budget fail fast on later calls.
    """

    def __init__(
        self,
        max_attempts: int = RETRY_ATTEMPTS,
        base_delay: float = RETRY_BASE_DELAY,
        cap_delay: float = RETRY_MAX_DELAY,
        max_rate_limited: int = MAX_RATE_LIMITED_RETRIES,
        max_retry_after: float = MAX_RETRY_AFTER,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.cap_delay = cap_delay
        self.max_rate_limited = max_rate_limited
        self.max_retry_after = max_retry_after
        self._sleep = sleep
        self._clock = clock

        self.failures: Dict[str, FetchAttemptRecord] = {}
        self.permanently_failed: Set[str] = set()

        # Stats
        self.total_retries = 0
        self.total_rate_limited = 0

    def delay_for(self, attempt: int) -> float:
        return backoff_delay(attempt, self.base_delay, self.cap_delay)

    def _record_failure(self, url: str) -> FetchAttemptRecord:
        record = self.failures.get(url)
        if record is None:
            record = FetchAttemptRecord(url=url)
            self.failures[url] = record
        record.failure_count += 1
        record.last_attempt = self._clock()
        return record

    def _retry_after_delay(self, error: RateLimitedError, attempt: int) -> float:
        if error.retry_after is not None:
            return max(0.0, min(error.retry_after, self.max_retry_after))
        return self.delay_for(attempt)

    async def run(self, url: str, attempt: Callable[[], Awaitable[T]]) -> T:
        """
        Call ``attempt()`` until it returns.

        Raises:
            PermanentFetchError: when the URL ran out of attempts now or
                earlier in this session.
        """
        if url in self.permanently_failed:
            record = self.failures.get(url)
            count = record.failure_count if record else self.max_attempts
            raise PermanentFetchError(url, count)

        failed_attempts = 0
        rate_limited = 0
        while True:
            try:
                result = await attempt()
            except RateLimitedError as e:
                rate_limited += 1
                self.total_rate_limited += 1
                self._record_failure(url)
                if rate_limited > self.max_rate_limited:
                    self.permanently_failed.add(url)
                    raise PermanentFetchError(url, failed_attempts + rate_limited, e) from e
                delay = self._retry_after_delay(e, rate_limited - 1)
                logger.warning("Rate limited on %s, retrying in %.1fs", url, delay)
            except (TransportError, ContentValidationError) as e:
                failed_attempts += 1
                self._record_failure(url)
                if failed_attempts >= self.max_attempts:
                    self.permanently_failed.add(url)
                    logger.warning("Giving up on %s after %d attempts: %s", url, failed_attempts, e)
                    raise PermanentFetchError(url, failed_attempts, e) from e
                delay = self.delay_for(failed_attempts - 1)
                logger.info(
                    "Attempt %d/%d for %s failed (%s), retrying in %.1fs",
                    failed_attempts, self.max_attempts, url, e, delay,
                )
            else:
                self.failures.pop(url, None)
                return result

            self.total_retries += 1
            await self._sleep(delay)

    def failure_record(self, url: str) -> Optional[FetchAttemptRecord]:
        return self.failures.get(url)
