"""
HTTP fetching and the cache-first fetch orchestrator.

``PageFetcher`` performs a single network request and maps every outcome
to a typed error. ``FetchOrchestrator`` composes it with the content
cache, the rate limiter and the retry controller:

- cache hit: returned immediately, no token, no delay
- cache miss: token per attempt, retried with backoff, stored in cache
"""

import asyncio
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Protocol

import aiohttp

from .cache import ContentCache
from .config import (
    BLOCK_MARKERS,
    CONNECTION_LIMIT,
    CONNECTION_LIMIT_PER_HOST,
    DNS_CACHE_TTL,
    KEEPALIVE_TIMEOUT,
    MIN_CONTENT_LENGTH,
    REQUEST_HEADERS,
    REQUEST_TIMEOUT,
)
from .errors import (
    ContentValidationError,
    HttpStatusError,
    RateLimitedError,
    TransportError,
)
from .models import Category
from .rate_limiter import TokenBucketRateLimiter
from .retry import RetryController

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    """Anything that can fetch one URL once."""

    async def fetch(self, url: str) -> str:
        ...


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header (delta seconds or HTTP date) into seconds."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(int(value)))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def validate_content(
    url: str,
    text: str,
    min_length: int = MIN_CONTENT_LENGTH,
    markers=BLOCK_MARKERS,
) -> str:
    """Reject bodies that are too short or look like a block page."""
    if len(text) < min_length:
        raise ContentValidationError(url, f"response too short ({len(text)} chars)")
    for marker in markers:
        if marker in text:
            raise ContentValidationError(url, f"blocked response ({marker!r})")
    return text


class PageFetcher:
    """
    aiohttp based fetcher for a single request.

    Use ``async with PageFetcher() as fetcher`` or call ``initialize()``
    and ``close()`` explicitly.
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT,
        headers: Optional[dict] = None,
        min_content_length: int = MIN_CONTENT_LENGTH,
    ):
        self.timeout = timeout
        self.headers = dict(REQUEST_HEADERS if headers is None else headers)
        self.min_content_length = min_content_length
        self._session: Optional[aiohttp.ClientSession] = None

        self.total_requests = 0
        self.status_counts = {}

    async def initialize(self):
        """Create the HTTP session."""
        if self._session is not None:
            return
        timeout = aiohttp.ClientTimeout(
            total=self.timeout,
            connect=min(10, self.timeout),
            sock_read=self.timeout,
        )
        connector = aiohttp.TCPConnector(
            limit=CONNECTION_LIMIT,
            limit_per_host=CONNECTION_LIMIT_PER_HOST,
            ttl_dns_cache=DNS_CACHE_TTL,
            keepalive_timeout=KEEPALIVE_TIMEOUT,
            enable_cleanup_closed=True,
        )
        self._session = aiohttp.ClientSession(
            headers=self.headers,
            timeout=timeout,
            connector=connector,
            cookie_jar=aiohttp.DummyCookieJar(),
        )

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "PageFetcher":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def fetch(self, url: str) -> str:
        """
        Fetch one page once.

        Raises:
            RateLimitedError: on 429, carrying the Retry-After hint.
            HttpStatusError: on any other non-2xx status.
            ContentValidationError: on a short or blocked body.
            TransportError: on connection errors and timeouts.
        """
        if self._session is None:
            await self.initialize()

        self.total_requests += 1
        try:
            async with self._session.get(url, allow_redirects=True) as response:
                status = response.status
                self.status_counts[status] = self.status_counts.get(status, 0) + 1

                if status == 429:
                    raise RateLimitedError(url, parse_retry_after(response.headers.get("Retry-After")))
                if not 200 <= status < 300:
                    raise HttpStatusError(url, status)

                text = await response.text(errors="replace")
        except asyncio.TimeoutError as e:
            raise TransportError(url, "request timed out") from e
        except aiohttp.ClientError as e:
            raise TransportError(url, f"{type(e).__name__}: {e}") from e

        return validate_content(url, text, min_length=self.min_content_length)


class FetchOrchestrator:
    """Resolve a URL to a document, preferring the cache."""

    def __init__(
        self,
        fetcher: Fetcher,
        cache: ContentCache,
        rate_limiter: TokenBucketRateLimiter,
        retry: RetryController,
        use_cache: bool = True,
        min_content_length: int = MIN_CONTENT_LENGTH,
    ):
        self.fetcher = fetcher
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.retry = retry
        self.use_cache = use_cache
        self.min_content_length = min_content_length

        self.cache_hits = 0
        self.network_fetches = 0
        self.cache_rejected = 0

    async def _attempt(self, url: str) -> str:
        await self.rate_limiter.acquire()
        self.network_fetches += 1
        return await self.fetcher.fetch(url)

    async def fetch_uncached(self, url: str) -> str:
        """Throttled, retried fetch that bypasses the cache (listing pages)."""
        return await self.retry.run(url, lambda: self._attempt(url))

    async def resolve(self, url: str, category: Category, force_refresh: bool = False) -> str:
        """
        Return the document for ``url``.

        A cached page that fails the content checks (a truncated or blocked
        body) is dropped and refetched.

        Raises:
            PermanentFetchError: when the network fetch ran out of retries.
        """
        namespace = category.kind
        if not force_refresh and self.use_cache:
            cached = await self.cache.get(namespace, url)
            if cached is not None:
                try:
                    validate_content(url, cached, min_length=self.min_content_length)
                except ContentValidationError as e:
                    self.cache_rejected += 1
                    logger.warning("Discarding cached page for %s: %s", url, e)
                    self.cache.invalidate(namespace, url)
                else:
                    self.cache_hits += 1
                    logger.debug("Cache hit for %s", url)
                    return cached

        document = await self.fetch_uncached(url)
        await self.cache.set(namespace, url, document)
        return document
