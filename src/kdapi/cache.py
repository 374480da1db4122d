"""
Content-addressable cache of raw profile pages.

Layout: ``{cache_dir}/idols/{md5(url)}.html`` and ``{cache_dir}/groups/...``.
Pages are written through a temporary file and renamed into place, so a
reader never sees a partial page. Cached pages never expire; they are
replaced only by a forced refresh or removed by ``invalidate``. Every I/O
error is logged and treated as a miss (reads) or a no-op (writes) so the
pipeline can fall back to the network.
"""

import hashlib
import logging
import os
import uuid
from pathlib import Path
from typing import Optional, Union

import aiofiles
import aiofiles.os

from .config import CACHE_DIR, FILE_ENCODING
from .errors import CacheIOError
from .models import ProfileKind

logger = logging.getLogger(__name__)

Namespace = Union[ProfileKind, str]


def cache_key(url: str) -> str:
    """MD5 hex digest of the URL (128-bit, deterministic)."""
    return hashlib.md5(url.encode("utf-8")).hexdigest()


class ContentCache:
    """Raw HTML store keyed by URL hash within an idol/group namespace."""

    def __init__(self, cache_dir: Path = CACHE_DIR):
        self.cache_dir = Path(cache_dir)
        self.hits = 0
        self.misses = 0
        self.errors = 0

    def ensure_dirs(self):
        for kind in ProfileKind:
            (self.cache_dir / f"{kind.value}s").mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _namespace(namespace: Namespace) -> str:
        value = namespace.value if isinstance(namespace, ProfileKind) else namespace
        if value not in ("idol", "group"):
            raise ValueError(f"Unknown cache namespace: {value!r}")
        return value

    @staticmethod
    def key(url: str) -> str:
        return cache_key(url)

    def path(self, namespace: Namespace, url: str) -> Path:
        return self.cache_dir / f"{self._namespace(namespace)}s" / f"{self.key(url)}.html"

    def exists(self, namespace: Namespace, url: str) -> bool:
        return self.path(namespace, url).is_file()

    async def get(self, namespace: Namespace, url: str) -> Optional[str]:
        """Return the cached page, or None on a miss or a read error."""
        path = self.path(namespace, url)
        try:
            async with aiofiles.open(path, mode="r", encoding=FILE_ENCODING) as f:
                content = await f.read()
        except FileNotFoundError:
            self.misses += 1
            return None
        except (OSError, UnicodeDecodeError) as e:
            self.errors += 1
            self.misses += 1
            logger.warning("%s", CacheIOError(f"Cache read error for {url}: {e}"))
            return None
        self.hits += 1
        return content

    async def set(self, namespace: Namespace, url: str, document: str):
        """Store a page through a temp file and rename. Failures are logged and ignored."""
        path = self.path(namespace, url)
        tmp_path = path.with_name(f".{path.name}.{os.getpid()}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, mode="w", encoding=FILE_ENCODING) as f:
                await f.write(document)
                await f.flush()
            await aiofiles.os.replace(tmp_path, path)
        except OSError as e:
            self.errors += 1
            logger.warning("%s", CacheIOError(f"Cache write error for {url}: {e}"))
            try:
                tmp_path.unlink()
            except OSError:
                pass

    def invalidate(self, namespace: Namespace, url: str) -> bool:
        """Delete a cached page. Returns True if something was removed."""
        path = self.path(namespace, url)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            self.errors += 1
            logger.warning("%s", CacheIOError(f"Cache delete error for {url}: {e}"))
            return False
