"""
kdapi: incremental harvester for K-pop idol and group profiles.
"""

from .errors import (
    ConfigurationError,
    ExtractionError,
    KdapiError,
    PermanentFetchError,
    PersistenceError,
    UrlFailure,
)
from .models import Category, Dataset, Profile, ProfileKind
from .session import ScrapeOptions, SessionDriver, SessionReport

__version__ = "0.5.0"

__all__ = [
    "Category",
    "ConfigurationError",
    "Dataset",
    "ExtractionError",
    "KdapiError",
    "PermanentFetchError",
    "PersistenceError",
    "Profile",
    "ProfileKind",
    "ScrapeOptions",
    "SessionDriver",
    "SessionReport",
    "UrlFailure",
]
