"""
Merge freshly extracted profiles into existing collections.

Identity is the profile URL. A record for a known URL replaces the old
payload but keeps the old id; a record for a new URL is appended with the
id it was created with. Re-scraping the same source therefore never changes
the id a consumer already holds.
"""

import logging
from typing import Dict, Iterable, List

from .models import Category, Dataset, MergeStats, Profile, new_profile_id

logger = logging.getLogger(__name__)


def merge_profiles(existing: List[Profile], new_records: Iterable[Profile]) -> List[Profile]:
    """
    Merge ``new_records`` into ``existing`` in place and return it.

    Known URLs keep their id and position; unknown URLs are appended.
    """
    index: Dict[str, int] = {profile.profile_url: i for i, profile in enumerate(existing)}

    for record in new_records:
        position = index.get(record.profile_url)
        if position is None:
            existing.append(record)
            index[record.profile_url] = len(existing) - 1
        else:
            current = existing[position]
            record.id = current.id
            existing[position] = record

    return existing


def merge_into_dataset(dataset: Dataset, category: Category, records: Iterable[Profile]) -> MergeStats:
    """
    Dataset-wide merge for one category's batch.

    A URL already held by any collection is updated where it lives, so a
    URL is never stored twice across collections. Fresh ids that collide
    with an existing id are regenerated.
    """
    stats = MergeStats()
    known_ids = dataset.ids()
    located = {}
    for cat in Category:
        for position, profile in enumerate(dataset[cat]):
            located[profile.profile_url] = (cat, position)

    target = dataset[category]
    for record in records:
        where = located.get(record.profile_url)
        if where is not None:
            cat, position = where
            record.id = dataset[cat][position].id
            dataset[cat][position] = record
            stats.updated += 1
            if cat is not category:
                logger.debug("%s already stored under %s, updated there", record.profile_url, cat.value)
            continue

        while record.id in known_ids:
            record.id = new_profile_id()
        target.append(record)
        known_ids.add(record.id)
        located[record.profile_url] = (category, len(target) - 1)
        stats.added += 1

    return stats
