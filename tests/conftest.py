"""
Shared fixtures: fake clocks, a scripted fetcher and HTML page builders.

No test touches the network; ``ScriptedFetcher`` replays canned bodies
or exceptions per URL and records every call.
"""

from pathlib import Path
from typing import Dict, List, Union

import pytest

from kdapi.cache import ContentCache
from kdapi.config import BASE_URL
from kdapi.fetcher import FetchOrchestrator, validate_content
from kdapi.rate_limiter import TokenBucketRateLimiter
from kdapi.retry import RetryController
from kdapi.storage import DatasetStore, FailedUrlStore

PADDING = "<!-- " + "padding " * 150 + "-->"


def profile_page(stage: str, grid: Dict[str, str] = None, extra: str = "") -> str:
    """A profile page long enough to pass the content length check."""
    rows = "".join(
        f'<div class="equal">{label}</div><div class="equal">{value}</div>'
        for label, value in (grid or {}).items()
    )
    return (
        "<html><head>"
        f'<meta name="description" content="{stage} is a K-pop artist.">'
        f'<meta property="og:image" content="https://cdn.example.com/documents/{stage}.jpg">'
        "</head><body>"
        f"<h1>{stage} Profile</h1>"
        f'<div class="data-grid">{rows}</div>'
        f"{extra}{PADDING}</body></html>"
    )


def listing_page(hrefs: List[str]) -> str:
    links = "".join(f'<a href="{href}">profile</a>' for href in hrefs)
    return f"<html><body><nav>{links}</nav>{PADDING}</body></html>"


def idol_url(slug: str) -> str:
    return f"{BASE_URL}/profiles/idol/{slug}"


def group_url(slug: str) -> str:
    return f"{BASE_URL}/profiles/group/{slug}"


Response = Union[str, BaseException]


class ScriptedFetcher:
    """
    Fetcher double. Each URL maps to one response or a list of responses
    consumed in order (the last one repeats). Bodies go through the same
    content validation as the real fetcher.
    """

    def __init__(self, responses: Dict[str, Union[Response, List[Response]]] = None):
        self.responses = dict(responses or {})
        self.calls: List[str] = []

    def set(self, url: str, response):
        self.responses[url] = response

    def count(self, url: str) -> int:
        return self.calls.count(url)

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.responses:
            raise AssertionError(f"unexpected fetch of {url}")
        response = self.responses[url]
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, BaseException):
            raise response
        return validate_content(url, response)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingSleep:
    """Async sleep double that records delays and optionally moves a clock."""

    def __init__(self, clock: FakeClock = None):
        self.delays: List[float] = []
        self.clock = clock

    async def __call__(self, seconds: float):
        self.delays.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fetcher() -> ScriptedFetcher:
    return ScriptedFetcher()


@pytest.fixture
def cache(tmp_path: Path) -> ContentCache:
    return ContentCache(tmp_path / "cache")


@pytest.fixture
def store(tmp_path: Path) -> DatasetStore:
    return DatasetStore(tmp_path / "data")


@pytest.fixture
def failed_store(tmp_path: Path) -> FailedUrlStore:
    return FailedUrlStore(tmp_path / "data")


@pytest.fixture
def retry_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def orchestrator(fetcher, cache, retry_sleep) -> FetchOrchestrator:
    limiter = TokenBucketRateLimiter(capacity=1000, refill_rate=1000)
    retry = RetryController(sleep=retry_sleep)
    return FetchOrchestrator(fetcher, cache, limiter, retry)
