"""
Error types for the scraping pipeline.

Per-URL errors (transport, rate limiting, content validation, extraction)
never escape the batch controller: they are turned into ``UrlFailure``
values. Only ``PersistenceError`` and ``ConfigurationError`` end a session.
"""

from dataclasses import dataclass
from typing import Optional


class KdapiError(Exception):
    """Base class for all pipeline errors."""


class FetchError(KdapiError):
    """A single fetch attempt failed."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{message} ({url})")
        self.url = url


class TransportError(FetchError):
    """Connection failure or timeout."""


class HttpStatusError(TransportError):
    """Non-2xx response other than 429."""

    def __init__(self, url: str, status: int):
        super().__init__(url, f"HTTP {status}")
        self.status = status


class RateLimitedError(FetchError):
    """HTTP 429. ``retry_after`` is the server hint in seconds, if any."""

    def __init__(self, url: str, retry_after: Optional[float] = None):
        super().__init__(url, "HTTP 429 Too Many Requests")
        self.retry_after = retry_after


class ContentValidationError(FetchError):
    """2xx response whose body is implausibly short or a block page."""


class PermanentFetchError(FetchError):
    """Retry budget exhausted; the URL is given up for this session."""

    def __init__(self, url: str, attempts: int, last_error: Optional[BaseException] = None):
        reason = f": {last_error}" if last_error else ""
        super().__init__(url, f"gave up after {attempts} attempts{reason}")
        self.attempts = attempts
        self.last_error = last_error


class CacheIOError(KdapiError):
    """Cache read or write failure. Logged and degraded, never raised to callers."""


class ExtractionError(KdapiError):
    """The extractor could not turn a document into a profile."""


class PersistenceError(KdapiError):
    """Writing the dataset failed. Fatal for the save call."""


class ConfigurationError(KdapiError):
    """Invalid scrape options."""


@dataclass
class UrlFailure:
    """Outcome of a URL that could not be turned into a profile this session."""
    url: str
    category: str
    reason: str
    message: str = ""

    @classmethod
    def from_exception(cls, url: str, category: str, exc: BaseException) -> "UrlFailure":
        if isinstance(exc, PermanentFetchError):
            reason = "fetch"
        elif isinstance(exc, ExtractionError):
            reason = "extraction"
        else:
            reason = type(exc).__name__
        return cls(url=url, category=category, reason=reason, message=str(exc))

    def to_dict(self) -> dict:
        return {"url": self.url, "category": self.category, "reason": self.reason}
