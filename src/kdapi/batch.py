"""
Bounded-parallelism batch processing of profile URLs.

URLs are split into consecutive chunks of ``batch_size``. Every URL in a
chunk is resolved and extracted concurrently and settles on its own, as a
profile or as a ``UrlFailure``. Chunks run strictly one after another: the
``on_batch_complete`` callback (merge and checkpoint) finishes before the
next chunk starts, and the controller pauses between chunks.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from .config import DEFAULT_BATCH_DELAY_MS, DEFAULT_BATCH_SIZE
from .errors import ExtractionError, FetchError, UrlFailure
from .extractor import extract
from .fetcher import FetchOrchestrator
from .models import Category, Profile

logger = logging.getLogger(__name__)

ExtractFn = Callable[[str, Category, str], Profile]
BatchCallback = Callable[[List[Profile], List[UrlFailure]], Awaitable[None]]


@dataclass
class ProfileResult:
    """How a single URL settled."""
    url: str
    profile: Optional[Profile] = None
    failure: Optional[UrlFailure] = None

    @property
    def ok(self) -> bool:
        return self.profile is not None


@dataclass
class BatchOutcome:
    records: List[Profile] = field(default_factory=list)
    failures: List[UrlFailure] = field(default_factory=list)


@dataclass
class BatchProgress:
    """Progress of one ``BatchController.run`` call."""
    category: Category
    total: int
    batches_total: int
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    batches_done: int = 0
    current_urls: List[str] = field(default_factory=list)
    clock: Callable[[], float] = field(default=time.time, repr=False)
    start_time: float = 0.0

    def __post_init__(self):
        if not self.start_time:
            self.start_time = self.clock()

    @property
    def elapsed_time(self) -> float:
        return max(0.0, self.clock() - self.start_time)

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.processed)

    @property
    def success_rate(self) -> float:
        if self.processed == 0:
            return 0.0
        return self.succeeded / self.processed * 100

    @property
    def progress_percent(self) -> float:
        if self.total == 0:
            return 100.0
        return self.processed / self.total * 100

    @property
    def urls_per_minute(self) -> float:
        elapsed = self.elapsed_time
        return self.processed / elapsed * 60 if elapsed > 0 else 0.0

    @property
    def estimated_remaining_seconds(self) -> float:
        """elapsed / processed * remaining; 0 until something was processed."""
        if self.processed == 0:
            return 0.0
        return self.elapsed_time / self.processed * self.remaining


class BatchController:
    """Runs fetch and extract for a list of URLs, one chunk at a time."""

    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        extract_fn: ExtractFn = extract,
        batch_size: int = DEFAULT_BATCH_SIZE,
        delay_between_batches: float = DEFAULT_BATCH_DELAY_MS / 1000,
        on_batch_complete: Optional[BatchCallback] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.orchestrator = orchestrator
        self.extract_fn = extract_fn
        self.batch_size = batch_size
        self.delay_between_batches = delay_between_batches
        self.on_batch_complete = on_batch_complete
        self._sleep = sleep
        self._clock = clock

        self.progress: Optional[BatchProgress] = None

    async def process_url(self, url: str, category: Category, force_refresh: bool = False) -> ProfileResult:
        """Resolve and extract one URL. Never raises for per-URL problems."""
        try:
            document = await self.orchestrator.resolve(url, category, force_refresh=force_refresh)
        except FetchError as e:
            logger.warning("Fetch failed for %s: %s", url, e)
            return ProfileResult(url, failure=UrlFailure.from_exception(url, category.value, e))

        loop = asyncio.get_running_loop()
        try:
            profile = await loop.run_in_executor(None, self.extract_fn, document, category, url)
        except ExtractionError as e:
            logger.warning("Extraction failed for %s: %s", url, e)
            return ProfileResult(url, failure=UrlFailure.from_exception(url, category.value, e))
        except Exception as e:
            error = ExtractionError(f"{type(e).__name__}: {e}")
            logger.warning("Extraction failed for %s: %s", url, error)
            return ProfileResult(url, failure=UrlFailure.from_exception(url, category.value, error))

        return ProfileResult(url, profile=profile)

    async def run(self, urls: List[str], category: Category, force_refresh: bool = False) -> BatchOutcome:
        urls = list(urls)
        chunks = [urls[i:i + self.batch_size] for i in range(0, len(urls), self.batch_size)]
        self.progress = BatchProgress(
            category=category,
            total=len(urls),
            batches_total=math.ceil(len(urls) / self.batch_size),
            clock=self._clock,
        )
        outcome = BatchOutcome()

        for index, chunk in enumerate(chunks):
            self.progress.current_urls = list(chunk)
            logger.debug("Batch %d/%d for %s (%d URLs)", index + 1, len(chunks), category.value, len(chunk))

            results = await asyncio.gather(
                *(self.process_url(url, category, force_refresh) for url in chunk)
            )
            records = [r.profile for r in results if r.ok]
            failures = [r.failure for r in results if not r.ok]

            self.progress.processed += len(results)
            self.progress.succeeded += len(records)
            self.progress.failed += len(failures)

            if self.on_batch_complete is not None:
                await self.on_batch_complete(records, failures)

            outcome.records.extend(records)
            outcome.failures.extend(failures)
            self.progress.batches_done += 1
            self.progress.current_urls = []

            if index < len(chunks) - 1 and self.delay_between_batches > 0:
                await self._sleep(self.delay_between_batches)

        return outcome
