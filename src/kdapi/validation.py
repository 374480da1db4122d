"""
Sanity checks and cleanup for extracted profile payloads.

Validation never rejects a profile; the session logs the problems and the
profile is merged anyway.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from .models import Profile

BLOOD_TYPE_RE = re.compile(r"^(A|B|O|AB)[+-]?$")
MBTI_RE = re.compile(r"^[IE][NS][FT][JP](-[AT])?$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class ValidationIssue:
    path: str
    message: str
    value: Any = None

    def __str__(self) -> str:
        return f"{self.path}: {self.message} ({self.value!r})"


@dataclass
class ValidationResult:
    errors: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def is_valid_blood_type(value: str) -> bool:
    return bool(BLOOD_TYPE_RE.match(value))


def is_valid_mbti(value: str) -> bool:
    return bool(MBTI_RE.match(value))


def is_valid_date(value: str) -> bool:
    """True for a real calendar date in YYYY-MM-DD form."""
    if not ISO_DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


def _section(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


def validate_profile(profile: Profile) -> ValidationResult:
    """Check names, blood type, MBTI, dates and social links."""
    result = ValidationResult()
    payload = profile.payload

    names = _section(payload, "names")
    if not names.get("stage"):
        result.errors.append(ValidationIssue("names.stage", "Stage name is required", names.get("stage")))

    physical = _section(payload, "physicalInfo")
    blood_type = physical.get("bloodType")
    if blood_type and not is_valid_blood_type(blood_type):
        result.errors.append(ValidationIssue("physicalInfo.bloodType", "Invalid blood type format", blood_type))

    mbti = physical.get("mbti")
    if mbti and not is_valid_mbti(mbti):
        result.errors.append(ValidationIssue("physicalInfo.mbti", "Invalid MBTI format", mbti))

    dates = [
        ("physicalInfo.birthDate", physical.get("birthDate")),
        ("careerInfo.debutDate", _section(payload, "careerInfo").get("debutDate")),
        ("groupInfo.debutDate", _section(payload, "groupInfo").get("debutDate")),
        ("groupInfo.disbandmentDate", _section(payload, "groupInfo").get("disbandmentDate")),
    ]
    for path, value in dates:
        if value and not is_valid_date(value):
            result.errors.append(ValidationIssue(path, "Invalid date format", value))

    for platform, url in _section(payload, "socialMedia").items():
        if url and not is_valid_url(url):
            result.errors.append(ValidationIssue(f"socialMedia.{platform}", "Invalid URL format", url))

    return result


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def cleanup_profile(profile: Profile) -> Profile:
    """
    Normalise a profile payload in place.

    Blank strings become None, empty aliases are dropped and social links
    that are not strings are removed (an empty ``socialMedia`` becomes None).
    Fields missing from the payload stay missing.
    """
    payload = profile.payload

    names = payload.get("names")
    if isinstance(names, dict):
        if "korean" in names:
            names["korean"] = _blank_to_none(names["korean"])
        if "aliases" in names:
            names["aliases"] = [alias for alias in names["aliases"] or [] if alias]

    company = payload.get("company")
    if isinstance(company, dict) and "current" in company:
        company["current"] = _blank_to_none(company.get("current"))

    social = payload.get("socialMedia")
    if isinstance(social, dict):
        cleaned = {k: v for k, v in social.items() if isinstance(v, str) and v}
        payload["socialMedia"] = cleaned or None

    return profile
