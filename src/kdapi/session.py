"""
Session driver: sequences categories through discovery, filtering,
batching, merging and checkpointing.

A session never aborts because of a single URL. Failures are collected as
``UrlFailure`` values and written to the failed-URL ledger at every
checkpoint; only a ``PersistenceError`` (the dataset could not be saved)
stops the session.
"""

import asyncio
import logging
import random
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Set

from .batch import BatchController, BatchProgress, ExtractFn
from .config import DEFAULT_BATCH_DELAY_MS, DEFAULT_BATCH_SIZE, DEFAULT_SAMPLE_SIZE
from .errors import ConfigurationError, FetchError, UrlFailure
from .extractor import extract, extract_profile_links
from .fetcher import FetchOrchestrator
from .models import Category, Dataset, Profile
from .storage import DatasetStore, FailedUrlStore
from .validation import cleanup_profile, validate_profile

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    FILTERING = "filtering"
    BATCHING = "batching"
    MERGING = "merging"
    CHECKPOINTED = "checkpointed"
    DONE = "done"


@dataclass
class ScrapeOptions:
    """User-facing knobs of a scrape session. ``delay_ms`` is in milliseconds."""
    debug: bool = False
    sample_size: int = DEFAULT_SAMPLE_SIZE
    random_sample: bool = True
    delay_ms: int = DEFAULT_BATCH_DELAY_MS
    batch_size: int = DEFAULT_BATCH_SIZE
    use_cache: bool = True
    force_refresh: bool = False
    categories: Optional[List[Category]] = None

    def validate(self):
        """Raises ConfigurationError on out-of-range values."""
        if self.batch_size < 1:
            raise ConfigurationError(f"batch size must be at least 1 (got {self.batch_size})")
        if self.delay_ms < 0:
            raise ConfigurationError(f"delay must not be negative (got {self.delay_ms})")
        if self.debug and self.sample_size < 1:
            raise ConfigurationError(f"sample size must be at least 1 (got {self.sample_size})")

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000


@dataclass
class CategoryReport:
    category: Category
    discovered: int = 0
    skipped: int = 0
    succeeded: int = 0
    failed: int = 0
    added: int = 0
    updated: int = 0
    invalid: int = 0
    discovery_error: Optional[str] = None
    checkpointed: bool = False
    failures: List[UrlFailure] = field(default_factory=list)
    succeeded_urls: Set[str] = field(default_factory=set)


@dataclass
class SessionReport:
    categories: Dict[Category, CategoryReport] = field(default_factory=OrderedDict)
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    def category(self, category: Category) -> CategoryReport:
        if category not in self.categories:
            self.categories[category] = CategoryReport(category)
        return self.categories[category]

    @property
    def failures(self) -> List[UrlFailure]:
        return [f for report in self.categories.values() for f in report.failures]

    @property
    def succeeded_urls(self) -> Set[str]:
        urls = set()
        for report in self.categories.values():
            urls |= report.succeeded_urls
        return urls

    @property
    def total_succeeded(self) -> int:
        return sum(r.succeeded for r in self.categories.values())

    @property
    def total_failed(self) -> int:
        return sum(r.failed for r in self.categories.values())

    @property
    def elapsed_time(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.time()
        return end - self.started_at


class SessionDriver:
    """
    Drives one scrape (or retry) session over the dataset in ``store``.

    The dataset is loaded at the start, mutated only after a batch has fully
    settled, and saved after every batch.
    """

    def __init__(
        self,
        store: DatasetStore,
        orchestrator: FetchOrchestrator,
        failed_store: Optional[FailedUrlStore] = None,
        options: Optional[ScrapeOptions] = None,
        extract_fn: ExtractFn = extract,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.failed_store = failed_store
        self.options = options or ScrapeOptions()
        self.extract_fn = extract_fn
        self.rng = rng or random.Random()
        self._sleep = sleep

        self.state = SessionState.IDLE
        self.dataset: Optional[Dataset] = None
        self.report = SessionReport()
        self.current_category: Optional[Category] = None
        self.batch: Optional[BatchController] = None

    @property
    def progress(self) -> Optional[BatchProgress]:
        return self.batch.progress if self.batch is not None else None

    async def run(self, categories: Optional[Iterable[Category]] = None) -> SessionReport:
        """
        Scrape ``categories`` (default: all five, in order).

        Raises:
            ConfigurationError: if the options are invalid.
            PersistenceError: if a checkpoint could not be written.
        """
        self.options.validate()
        categories = list(categories or self.options.categories or list(Category))

        self.report = SessionReport()
        self.dataset = await self.store.load()
        logger.info("Loaded %d existing profiles from %s", len(self.dataset), self.store.data_dir)

        for category in categories:
            await self._scrape_category(category)

        self._log_ledger()
        self.report.finished_at = time.time()
        self.state = SessionState.DONE
        return self.report

    async def retry_failed(self) -> SessionReport:
        """Re-run the URLs recorded in the failed-URL ledger."""
        self.options.validate()
        if self.failed_store is None:
            raise ConfigurationError("retry-failed needs a failed-URL store")

        self.report = SessionReport()
        self.dataset = await self.store.load()

        by_category: Dict[Category, List[str]] = OrderedDict()
        for entry in await self.failed_store.load():
            try:
                category = Category(entry.category)
            except ValueError:
                logger.warning("Skipping %s with unknown category %r", entry.url, entry.category)
                continue
            by_category.setdefault(category, []).append(entry.url)

        if not by_category:
            logger.info("No failed URLs to retry")

        for category, urls in by_category.items():
            report = self.report.category(category)
            report.discovered = len(urls)
            await self._run_batches(category, urls, self.options.force_refresh)

        self._log_ledger()
        self.report.finished_at = time.time()
        self.state = SessionState.DONE
        return self.report

    async def discover(self, category: Category) -> List[str]:
        """Fetch the category listing page and return its profile URLs."""
        listing = await self.orchestrator.fetch_uncached(category.listing_url)
        return extract_profile_links(listing)

    def filter_urls(self, urls: List[str]) -> List[str]:
        """Drop URLs already in the dataset, unless forcing a refresh."""
        if self.options.force_refresh:
            return list(urls)
        known = self.dataset.profile_urls()
        return [url for url in urls if url not in known]

    def _sample(self, urls: List[str]) -> List[str]:
        size = min(self.options.sample_size, len(urls))
        if self.options.random_sample:
            return self.rng.sample(urls, size)
        return urls[:size]

    async def _scrape_category(self, category: Category):
        report = self.report.category(category)
        self.current_category = category

        self.state = SessionState.DISCOVERING
        logger.info("Discovering %s from %s", category.label.lower(), category.listing_url)
        try:
            urls = await self.discover(category)
        except FetchError as e:
            logger.error("Could not load listing for %s: %s", category.value, e)
            report.discovery_error = str(e)
            urls = []
        report.discovered = len(urls)

        if self.options.debug:
            urls = self._sample(urls)

        self.state = SessionState.FILTERING
        targets = self.filter_urls(urls)
        report.skipped = len(urls) - len(targets)
        logger.info(
            "%s: %d discovered, %d already known, %d to fetch",
            category.label, report.discovered, report.skipped, len(targets),
        )

        if targets:
            await self._run_batches(category, targets, self.options.force_refresh)
        else:
            self.state = SessionState.MERGING
            await self.store.save(self.dataset)
            self.state = SessionState.CHECKPOINTED
        report.checkpointed = True

    async def _run_batches(self, category: Category, urls: List[str], force_refresh: bool):
        report = self.report.category(category)
        self.current_category = category

        async def checkpoint(records: List[Profile], failures: List[UrlFailure]):
            await self._checkpoint(category, records, failures)

        self.batch = BatchController(
            self.orchestrator,
            extract_fn=self.extract_fn,
            batch_size=self.options.batch_size,
            delay_between_batches=self.options.delay_seconds,
            on_batch_complete=checkpoint,
            sleep=self._sleep,
        )
        self.state = SessionState.BATCHING
        await self.batch.run(urls, category, force_refresh=force_refresh)
        self.state = SessionState.CHECKPOINTED
        report.checkpointed = True

    async def _checkpoint(self, category: Category, records: List[Profile], failures: List[UrlFailure]):
        report = self.report.category(category)
        self.state = SessionState.MERGING

        for profile in records:
            result = validate_profile(cleanup_profile(profile))
            if not result.valid:
                report.invalid += 1
                logger.warning(
                    "Validation issues for %s: %s",
                    profile.profile_url, "; ".join(str(issue) for issue in result.errors),
                )

        stats = self.dataset.merge(category, records)
        report.added += stats.added
        report.updated += stats.updated
        report.succeeded += len(records)
        report.failed += len(failures)
        report.failures.extend(failures)
        report.succeeded_urls.update(profile.profile_url for profile in records)

        saved = False
        try:
            await self.store.save(self.dataset)
            saved = True
        finally:
            succeeded = {profile.profile_url for profile in records} if saved else set()
            await self._update_ledger(failures, succeeded)
        if self.batch is not None and self.batch.progress is not None:
            progress = self.batch.progress
            logger.info(
                "%s: batch %d/%d saved (%d added, %d updated, %d failed)",
                category.label, progress.batches_done + 1, progress.batches_total,
                stats.added, stats.updated, len(failures),
            )
        self.state = SessionState.BATCHING

    async def _update_ledger(self, failures: List[UrlFailure], succeeded: Set[str]):
        if self.failed_store is None or not (failures or succeeded):
            return
        await self.failed_store.update(failures, succeeded)

    def _log_ledger(self):
        if self.failed_store is not None and self.report.failures:
            logger.info("%d URLs recorded in %s", len(self.report.failures), self.failed_store.path)
