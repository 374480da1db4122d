"""
Data model: categories, the profile envelope and the five-collection dataset.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import BASE_URL, ENDPOINTS


class ProfileKind(Enum):
    """Cache namespace and record shape."""
    IDOL = "idol"
    GROUP = "group"


class Category(Enum):
    """One collection of the dataset."""
    FEMALE_IDOLS = "femaleIdols"
    MALE_IDOLS = "maleIdols"
    GIRL_GROUPS = "girlGroups"
    BOY_GROUPS = "boyGroups"
    COED_GROUPS = "coedGroups"

    @property
    def kind(self) -> ProfileKind:
        if self in (Category.FEMALE_IDOLS, Category.MALE_IDOLS):
            return ProfileKind.IDOL
        return ProfileKind.GROUP

    @property
    def listing_url(self) -> str:
        return f"{BASE_URL}{ENDPOINTS[self.value]}"

    @property
    def label(self) -> str:
        return {
            Category.FEMALE_IDOLS: "Female idols",
            Category.MALE_IDOLS: "Male idols",
            Category.GIRL_GROUPS: "Girl groups",
            Category.BOY_GROUPS: "Boy groups",
            Category.COED_GROUPS: "Co-ed groups",
        }[self]


IDOL_CATEGORIES = (Category.FEMALE_IDOLS, Category.MALE_IDOLS)
GROUP_CATEGORIES = (Category.GIRL_GROUPS, Category.BOY_GROUPS, Category.COED_GROUPS)


def new_profile_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Profile:
    """
    Identity envelope around an opaque payload.

    ``id`` is assigned once when the record is first created and is kept
    across merges; ``profile_url`` is the identity used for deduplication.
    """
    profile_url: str
    kind: ProfileKind
    payload: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_profile_id)

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "profileUrl": self.profile_url}
        data.update(self.payload)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], kind: ProfileKind) -> "Profile":
        payload = {k: v for k, v in data.items() if k not in ("id", "profileUrl")}
        return cls(
            id=data["id"],
            profile_url=data["profileUrl"],
            kind=kind,
            payload=payload,
        )


@dataclass
class Dataset:
    """The five collections, keyed by category."""
    collections: Dict[Category, List[Profile]] = field(
        default_factory=lambda: {category: [] for category in Category}
    )

    def __getitem__(self, category: Category) -> List[Profile]:
        return self.collections[category]

    def __setitem__(self, category: Category, profiles: List[Profile]):
        self.collections[category] = profiles

    def all_profiles(self) -> Iterable[Profile]:
        for category in Category:
            yield from self.collections[category]

    def __len__(self) -> int:
        return sum(len(profiles) for profiles in self.collections.values())

    def profile_urls(self) -> set:
        return {profile.profile_url for profile in self.all_profiles()}

    def ids(self) -> set:
        return {profile.id for profile in self.all_profiles()}

    def locate(self, profile_url: str) -> Optional[Tuple[Category, int]]:
        """Find which collection (and position) holds a URL."""
        for category in Category:
            for index, profile in enumerate(self.collections[category]):
                if profile.profile_url == profile_url:
                    return category, index
        return None

    def merge(self, category: Category, records: Iterable[Profile]) -> "MergeStats":
        from .merge import merge_into_dataset
        return merge_into_dataset(self, category, records)


@dataclass
class MergeStats:
    added: int = 0
    updated: int = 0

    @property
    def total(self) -> int:
        return self.added + self.updated
