"""
Configuration settings for the K-pop profile dataset harvester.
"""

import os
from pathlib import Path

# =============================================================================
# PATHS (using pathlib for cross-platform compatibility)
# =============================================================================

BASE_DIR = Path.cwd()
DATA_DIR = Path(os.getenv("KDAPI_DATA_DIR", BASE_DIR / "data"))
CACHE_DIR = Path(os.getenv("KDAPI_CACHE_DIR", BASE_DIR / "cache"))

IDOLS_FILENAME = "idols.json"
GROUPS_FILENAME = "groups.json"
METADATA_FILENAME = "metadata.json"
FAILED_URLS_FILENAME = "failed_urls.json"  # Permanent failures, for retry-failed

DATASET_VERSION = "0.5.0"

# =============================================================================
# SOURCE
# =============================================================================

BASE_URL = "https://kpopping.com"

ENDPOINTS = {
    "femaleIdols": "/profiles/the-idols/women",
    "maleIdols": "/profiles/the-idols/men",
    "girlGroups": "/profiles/the-groups/women",
    "boyGroups": "/profiles/the-groups/men",
    "coedGroups": "/profiles/the-groups/coed",
}

# =============================================================================
# CRAWLING SETTINGS
# =============================================================================

REQUEST_TIMEOUT = 20             # Seconds per request
RETRY_ATTEMPTS = 3               # Failed attempts before a URL is given up for the session
RETRY_BASE_DELAY = 1.0           # Seconds; grows by BACKOFF_FACTOR per attempt
RETRY_MAX_DELAY = 60.0           # Backoff never waits longer than this
BACKOFF_FACTOR = 1.5
MAX_RATE_LIMITED_RETRIES = 10    # 429 responses tolerated per URL before giving up
MAX_RETRY_AFTER = 300.0          # Upper bound on a server supplied Retry-After

RATE_LIMIT_CAPACITY = 60         # Token bucket size (burst)
RATE_LIMIT_PER_MINUTE = 60       # Sustained requests per minute

DEFAULT_BATCH_SIZE = 5           # Parallel fetches per batch
DEFAULT_BATCH_DELAY_MS = 2000    # Pause between batches
DEFAULT_SAMPLE_SIZE = 5          # Profiles per category in debug mode

# Connection pool settings
CONNECTION_LIMIT = 20
CONNECTION_LIMIT_PER_HOST = 10
DNS_CACHE_TTL = 300
KEEPALIVE_TIMEOUT = 30

# Content sanity checks
MIN_CONTENT_LENGTH = 1000        # Shorter bodies are treated as failed fetches
BLOCK_MARKERS = (
    "Too Many Requests",
    "Access Denied",
    "Attention Required! | Cloudflare",
    "Just a moment...",
)

# =============================================================================
# HTTP HEADERS
# =============================================================================

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
)

REQUEST_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
    "Referer": "https://www.google.com/",
    "Connection": "keep-alive",
}

# =============================================================================
# FILE ENCODING (Cross-platform)
# =============================================================================

FILE_ENCODING = "utf-8"
