"""
Dataset persistence.

The dataset is written as three JSON documents (idols, groups, metadata).
A save stages all three in temporary files and replaces the targets
together, rolling back on failure. Save failures are fatal for the save
call; load failures degrade to empty shards so a cold start always works.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import aiofiles
import aiofiles.os

from .config import (
    DATA_DIR,
    DATASET_VERSION,
    FAILED_URLS_FILENAME,
    FILE_ENCODING,
    GROUPS_FILENAME,
    IDOLS_FILENAME,
    METADATA_FILENAME,
)
from .errors import PersistenceError, UrlFailure
from .models import (
    GROUP_CATEGORIES,
    IDOL_CATEGORIES,
    Category,
    Dataset,
    Profile,
    ProfileKind,
)

logger = logging.getLogger(__name__)


def _temp_path(path: Path, suffix: str = "tmp") -> Path:
    return path.with_name(f".{path.name}.{os.getpid()}.{suffix}")


async def _remove_quietly(path: Path):
    try:
        await aiofiles.os.remove(path)
    except (FileNotFoundError, NotADirectoryError):
        pass


async def write_json_temp(path: Path, data: Any) -> Path:
    """Write JSON next to ``path`` and return the temp file, ready for ``replace``."""
    tmp_path = _temp_path(path)
    content = json.dumps(data, indent=2, ensure_ascii=False)
    try:
        async with aiofiles.open(tmp_path, mode="w", encoding=FILE_ENCODING) as f:
            await f.write(content)
            await f.flush()
    except BaseException:
        await _remove_quietly(tmp_path)
        raise
    return tmp_path


async def write_json_atomic(path: Path, data: Any):
    """Write JSON to ``path`` via a temp file and rename."""
    tmp_path = await write_json_temp(path, data)
    try:
        await aiofiles.os.replace(tmp_path, path)
    finally:
        await _remove_quietly(tmp_path)


async def read_json(path: Path) -> Optional[Any]:
    """Read a JSON file. Returns None if it does not exist or is unreadable."""
    try:
        async with aiofiles.open(path, mode="r", encoding=FILE_ENCODING) as f:
            content = await f.read()
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read %s: %s", path, e)
        return None
    if not content.strip():
        return None
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring corrupt file %s: %s", path, e)
        return None


def _debut_dates(dataset: Dataset) -> List[str]:
    dates = []
    for category in IDOL_CATEGORIES:
        for profile in dataset[category]:
            debut = (profile.payload.get("careerInfo") or {}).get("debutDate")
            if debut:
                dates.append(debut)
    for category in GROUP_CATEGORIES:
        for profile in dataset[category]:
            debut = (profile.payload.get("groupInfo") or {}).get("debutDate")
            if debut:
                dates.append(debut)
    return dates


def build_metadata(dataset: Dataset, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Derive the metadata summary (counts, active splits, coverage)."""
    now = now or datetime.now(timezone.utc)

    def active(category: Category) -> int:
        return sum(1 for p in dataset[category] if p.payload.get("active"))

    def inactive(category: Category) -> int:
        return sum(1 for p in dataset[category] if not p.payload.get("active"))

    def disbanded(category: Category) -> int:
        return sum(1 for p in dataset[category] if p.payload.get("status") == "disbanded")

    debut_dates = _debut_dates(dataset)
    group_total = sum(len(dataset[c]) for c in GROUP_CATEGORIES)
    idol_total = sum(len(dataset[c]) for c in IDOL_CATEGORIES)

    return {
        "lastUpdated": now.isoformat().replace("+00:00", "Z"),
        "version": DATASET_VERSION,
        "coverage": {
            "startDate": min(debut_dates) if debut_dates else "",
            "endDate": now.date().isoformat(),
        },
        "stats": {
            "groups": {
                "total": group_total,
                "active": {
                    "girl": active(Category.GIRL_GROUPS),
                    "boy": active(Category.BOY_GROUPS),
                    "coed": active(Category.COED_GROUPS),
                },
                "disbanded": {
                    "girl": disbanded(Category.GIRL_GROUPS),
                    "boy": disbanded(Category.BOY_GROUPS),
                    "coed": disbanded(Category.COED_GROUPS),
                },
            },
            "idols": {
                "total": idol_total,
                "active": {
                    "female": active(Category.FEMALE_IDOLS),
                    "male": active(Category.MALE_IDOLS),
                },
                "inactive": {
                    "female": inactive(Category.FEMALE_IDOLS),
                    "male": inactive(Category.MALE_IDOLS),
                },
            },
            "total": group_total + idol_total,
        },
    }


class DatasetStore:
    """Loads and saves the sharded dataset under ``data_dir``."""

    def __init__(self, data_dir: Path = DATA_DIR):
        self.data_dir = Path(data_dir)
        self.saves = 0

    @property
    def idols_file(self) -> Path:
        return self.data_dir / IDOLS_FILENAME

    @property
    def groups_file(self) -> Path:
        return self.data_dir / GROUPS_FILENAME

    @property
    def metadata_file(self) -> Path:
        return self.data_dir / METADATA_FILENAME

    async def save(self, dataset: Dataset):
        """
        Write idols, groups and metadata as one unit.

        All three documents are written to temp files before any of them
        replaces its target. If a replace fails, the targets already
        replaced are restored from hardlink backups, so the files on disk
        always come from the same save.

        Raises:
            PersistenceError: if the documents could not be written.
        """
        idols = {c.value: [p.to_dict() for p in dataset[c]] for c in IDOL_CATEGORIES}
        groups = {c.value: [p.to_dict() for p in dataset[c]] for c in GROUP_CATEGORIES}
        metadata = build_metadata(dataset)
        documents = [(self.idols_file, idols), (self.groups_file, groups), (self.metadata_file, metadata)]

        staged: List[Tuple[Path, Path]] = []
        backups: List[Path] = []
        replaced: List[Tuple[Path, Optional[Path]]] = []
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            for target, data in documents:
                staged.append((await write_json_temp(target, data), target))
            for tmp_path, target in staged:
                backup = None
                if target.is_file():
                    backup = _temp_path(target, "bak")
                    await _remove_quietly(backup)
                    await aiofiles.os.link(target, backup)
                    backups.append(backup)
                await aiofiles.os.replace(tmp_path, target)
                replaced.append((target, backup))
        except (OSError, TypeError, ValueError) as e:
            await self._roll_back(replaced)
            logger.error("Failed to save dataset to %s: %s", self.data_dir, e)
            raise PersistenceError(f"Failed to save dataset to {self.data_dir}: {e}") from e
        finally:
            for leftover in [tmp for tmp, _ in staged] + backups:
                await _remove_quietly(leftover)

        self.saves += 1
        logger.debug("Saved %d profiles to %s", len(dataset), self.data_dir)

    async def _roll_back(self, replaced: List[Tuple[Path, Optional[Path]]]):
        for target, backup in reversed(replaced):
            try:
                if backup is not None:
                    await aiofiles.os.replace(backup, target)
                else:
                    await _remove_quietly(target)
            except OSError as e:
                logger.error("Could not restore %s after a failed save: %s", target, e)

    async def _load_shard(self, path: Path, categories, kind: ProfileKind, dataset: Dataset):
        data = await read_json(path)
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Unexpected layout in %s, starting empty", path)
            return
        for category in categories:
            entries = data.get(category.value) or []
            profiles = []
            for entry in entries:
                try:
                    profiles.append(Profile.from_dict(entry, kind))
                except (KeyError, TypeError):
                    logger.warning("Skipping malformed %s entry in %s", category.value, path)
            dataset[category] = profiles

    async def load(self) -> Dataset:
        """Load the dataset; missing or unreadable shards load as empty."""
        dataset = Dataset()
        await self._load_shard(self.idols_file, IDOL_CATEGORIES, ProfileKind.IDOL, dataset)
        await self._load_shard(self.groups_file, GROUP_CATEGORIES, ProfileKind.GROUP, dataset)
        return dataset

    async def load_metadata(self) -> Optional[Dict[str, Any]]:
        return await read_json(self.metadata_file)


class FailedUrlStore:
    """
    Ledger of URLs that failed permanently, kept across sessions.

    Entries are ``{url, category, reason}``; a URL that later succeeds
    is dropped from the ledger.
    """

    def __init__(self, data_dir: Path = DATA_DIR):
        self.path = Path(data_dir) / FAILED_URLS_FILENAME

    async def load(self) -> List[UrlFailure]:
        data = await read_json(self.path)
        if not isinstance(data, list):
            return []
        failures = []
        for entry in data:
            try:
                failures.append(UrlFailure(
                    url=entry["url"],
                    category=entry["category"],
                    reason=entry.get("reason", "unknown"),
                ))
            except (KeyError, TypeError):
                logger.warning("Skipping malformed entry in %s", self.path)
        return failures

    async def update(self, failed: List[UrlFailure], succeeded: set) -> List[UrlFailure]:
        """Merge new failures with the stored ledger and drop recovered URLs."""
        by_url = {f.url: f for f in await self.load()}
        for url in succeeded:
            by_url.pop(url, None)
        for failure in failed:
            by_url[failure.url] = failure

        remaining = list(by_url.values())
        try:
            if remaining:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                await write_json_atomic(self.path, [f.to_dict() for f in remaining])
            elif self.path.exists():
                await aiofiles.os.remove(self.path)
        except OSError as e:
            logger.error("Failed to write failed-URL ledger %s: %s", self.path, e)
            raise PersistenceError(f"Failed to write {self.path}: {e}") from e
        return remaining
