"""
HTML extraction for kpopping.com listing and profile pages.

Uses BeautifulSoup with the lxml parser. ``extract`` turns one profile page
into a ``Profile`` whose payload carries the camelCase fields stored in the
dataset; ``extract_profile_links`` finds profile URLs on a listing page.
"""

import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .config import BASE_URL
from .errors import ExtractionError
from .models import Category, Profile, ProfileKind

# =============================================================================
# TEXT HELPERS
# =============================================================================

ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\ufeff]")
HANGEUL_RE = re.compile(r"^[가-힣\s]+$")

POSITION_MAP = {
    "leader": "Leader",
    "main vocal": "Main Vocalist",
    "main vocalist": "Main Vocalist",
    "lead vocal": "Lead Vocalist",
    "lead vocalist": "Lead Vocalist",
    "vocal": "Vocalist",
    "vocalist": "Vocalist",
    "main rap": "Main Rapper",
    "main rapper": "Main Rapper",
    "lead rap": "Lead Rapper",
    "lead rapper": "Lead Rapper",
    "rap": "Rapper",
    "rapper": "Rapper",
    "main dance": "Main Dancer",
    "main dancer": "Main Dancer",
    "lead dance": "Lead Dancer",
    "lead dancer": "Lead Dancer",
    "dance": "Dancer",
    "dancer": "Dancer",
    "visual": "Visual",
    "center": "Center",
    "face": "Face of the Group",
    "face of the group": "Face of the Group",
    "maknae": "Maknae",
    "youngest": "Maknae",
}

SOCIAL_DOMAINS = [
    ("instagram.com", "instagram"),
    ("twitter.com", "twitter"),
    ("x.com", "twitter"),
    ("facebook.com", "facebook"),
    ("youtube.com", "youtube"),
    ("spotify.com", "spotify"),
    ("weibo.com", "weibo"),
    ("tiktok.com", "tiktok"),
    ("vlive.tv", "vlive"),
    ("cafe.daum.net", "fancafe"),
]

GROUP_TYPES = {
    Category.GIRL_GROUPS: "girl",
    Category.BOY_GROUPS: "boy",
    Category.COED_GROUPS: "co-ed",
}

ISO_COUNTRIES = {
    "KR": "South Korea",
    "JP": "Japan",
    "CN": "China",
    "TW": "Taiwan",
    "HK": "Hong Kong",
    "TH": "Thailand",
    "ID": "Indonesia",
    "PH": "Philippines",
    "VN": "Vietnam",
    "MY": "Malaysia",
    "SG": "Singapore",
    "US": "United States",
    "CA": "Canada",
    "AU": "Australia",
    "NZ": "New Zealand",
    "GB": "United Kingdom",
    "DE": "Germany",
    "BR": "Brazil",
}

LANGUAGE_NAMES = {
    "korean": "Korean",
    "english": "English",
    "japanese": "Japanese",
    "mandarin": "Mandarin",
    "chinese": "Mandarin",
    "cantonese": "Cantonese",
    "thai": "Thai",
    "indonesian": "Indonesian",
    "spanish": "Spanish",
}

COLOR_NAMES = {
    "sky blue": "#87CEEB",
    "pearl aqua": "#88D8C0",
    "rose quartz": "#F7CAC9",
    "mint": "#98FF98",
    "cosmic latte": "#FFF8E7",
    "lilac": "#C8A2C8",
    "pastel pink": "#FFD1DC",
    "baby blue": "#89CFF0",
    "royal blue": "#4169E1",
}


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace, drop zero-width characters, straighten quotes."""
    if not text:
        return ""
    text = ZERO_WIDTH_RE.sub("", text)
    text = re.sub(r"\s+", " ", text).strip()
    return (
        text.replace("\u201c", "\"").replace("\u201d", "\"")
        .replace("\u2019", "'").replace("\u2032", "'")
    )


def _build_date(year: int, month: int, day: int) -> Optional[str]:
    if year < 1900 or year > date.today().year + 1:
        return None
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _month_number(name: str) -> Optional[int]:
    for fmt in ("%B", "%b"):
        try:
            return datetime.strptime(name[:3] if fmt == "%b" else name, fmt).month
        except ValueError:
            continue
    return None


def normalize_date(text: Optional[str]) -> Optional[str]:
    """
    Normalise a free-form date to ``YYYY-MM-DD``.

    Accepts ``YYYY-MM-DD``, ``DD-MM-YYYY``, ``Month DD, YYYY`` (with
    ordinals), and partial dates ``YYYY-MM``, ``Month YYYY`` and ``YYYY``,
    which are pinned to the first day. Any of ``- . / ／`` may separate
    numeric parts. Returns None when nothing plausible is found.
    """
    if not text:
        return None
    cleaned = re.sub(r"(\d+)(st|nd|rd|th)\b", r"\1", text.strip())
    cleaned = re.sub(r"[,，]", "", cleaned)
    cleaned = re.sub(r"[.／/]", "-", cleaned)
    cleaned = clean_text(cleaned)

    match = re.search(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b", cleaned)
    if match:
        return _build_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = re.search(r"\b(\d{1,2})-(\d{1,2})-(\d{4})\b", cleaned)
    if match:
        return _build_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))

    match = re.search(r"\b([A-Za-z]+) (\d{1,2}) (\d{4})\b", cleaned)
    if match:
        month = _month_number(match.group(1))
        if month:
            return _build_date(int(match.group(3)), month, int(match.group(2)))

    match = re.search(r"\b(\d{4})-(\d{1,2})\b", cleaned)
    if match:
        return _build_date(int(match.group(1)), int(match.group(2)), 1)

    match = re.search(r"\b([A-Za-z]+) (\d{4})\b", cleaned)
    if match:
        month = _month_number(match.group(1))
        if month:
            return _build_date(int(match.group(2)), month, 1)

    match = re.fullmatch(r"(\d{4})", cleaned)
    if match:
        return _build_date(int(match.group(1)), 1, 1)

    return None


def normalize_blood_type(text: Optional[str]) -> Optional[str]:
    """Map "type AB", "A positive", "o-" and similar to A, B, O or AB with optional Rh."""
    if not text:
        return None
    normalized = re.sub(r"TYPE|GROUP|BLOOD|혈액형", "", text.upper())
    normalized = normalized.replace("POSITIVE", "+").replace("NEGATIVE", "-")
    normalized = re.sub(r"[^A-Z+-]", "", normalized)
    match = re.fullmatch(r"(AB|A|B|O)([+-])?", normalized)
    if not match:
        return None
    return match.group(1) + (match.group(2) or "")


def parse_positions(text: Optional[str]) -> List[str]:
    """Split a position string ("Leader, Main Vocal / Visual") into canonical names."""
    if not text:
        return []
    positions = []
    for part in re.split(r"[,/&、]", text.lower()):
        cleaned = re.sub(r"\([^)]*\)", "", part).strip()
        cleaned = re.sub(r"^(is|was)\s+", "", cleaned)
        cleaned = re.sub(r"\s+position$", "", cleaned)
        if not cleaned:
            continue
        position = POSITION_MAP.get(cleaned)
        if position is None:
            for key, value in POSITION_MAP.items():
                if key in cleaned:
                    position = value
                    break
        if position and position not in positions:
            positions.append(position)
    return positions


def parse_period(text: Optional[str]) -> Optional[Dict[str, str]]:
    """Parse "2015-01 ~ present" style ranges into ``{start, end?}``."""
    if not text:
        return None
    match = re.search(
        r"(\d{4}[-./／]\d{1,2}(?:[-./／]\d{1,2})?|\d{4})\s*(?:-|until|to|~)\s*"
        r"(\d{4}[-./／]\d{1,2}(?:[-./／]\d{1,2})?|\d{4}|present)",
        text,
        re.IGNORECASE,
    )
    if not match:
        return None
    start, end = match.groups()
    period = {"start": normalize_date(start) or start}
    if end.lower() != "present":
        period["end"] = normalize_date(end) or end
    return period


def absolute_url(href: str) -> str:
    return href if href.startswith("http") else f"{BASE_URL}{href}"


def prune(value: Any) -> Any:
    """Drop None values and empty containers from nested dicts."""
    if isinstance(value, dict):
        pruned = {}
        for key, item in value.items():
            item = prune(item)
            if item is None or (isinstance(item, (dict, list)) and not item):
                continue
            pruned[key] = item
        return pruned
    if isinstance(value, list):
        return [prune(item) for item in value if item is not None]
    return value


# =============================================================================
# PAGE HELPERS
# =============================================================================

def _grid_cell(soup: BeautifulSoup, label: str):
    """The value cell following a ``.data-grid`` label cell."""
    for cell in soup.select(".data-grid .equal"):
        if label in cell.get_text():
            value = cell.find_next_sibling(class_="equal")
            if value is not None:
                return value
    return None


def _grid_value(soup: BeautifulSoup, label: str) -> str:
    cell = _grid_cell(soup, label)
    return clean_text(cell.get_text(" ")) if cell is not None else ""


def _meta_description(soup: BeautifulSoup) -> Optional[str]:
    meta = soup.find("meta", attrs={"name": "description"})
    content = meta.get("content") if meta else None
    return clean_text(content) or None


def extract_image_url(soup: BeautifulSoup) -> Optional[str]:
    og_image = soup.find("meta", attrs={"property": "og:image"})
    if og_image and "//" in (og_image.get("content") or ""):
        return og_image["content"]

    profile_image = soup.select_one(".profile-image img, .profile-pic img")
    if profile_image and "//" in (profile_image.get("src") or ""):
        return profile_image["src"]

    for img in soup.select('img[src*="documents"]'):
        src = img.get("src") or ""
        if "//" in src and "favicon" not in src and "logo" not in src:
            return src
    return None


def extract_names(soup: BeautifulSoup) -> Dict[str, Any]:
    heading = soup.find("h1")
    stage = clean_text(heading.get_text(" ")) if heading else ""
    stage = re.sub(r"\s+(?:profile|facts).*$", "", stage, flags=re.IGNORECASE)
    names: Dict[str, Any] = {"stage": stage}

    native = soup.select_one(".native-name")
    if native is not None:
        match = re.search(r"Korean:\s*([가-힣\s]+)", native.get_text())
        if match:
            names["korean"] = clean_text(match.group(1))

    birth = {}
    full_name = _grid_value(soup, "Full name:")
    if full_name and not HANGEUL_RE.match(full_name):
        birth["latin"] = full_name
    native_name = _grid_value(soup, "Native name:")
    if native_name and HANGEUL_RE.match(native_name):
        birth["hangeul"] = native_name
    if birth:
        names["birth"] = birth

    description = _meta_description(soup) or ""
    aliases = []
    patterns = (
        r"(?:also |alternatively |formerly )(?:known|written) as ([^,.]+)",
        r"(?:nicknamed|alias|a\.k\.a\.) ([^,.]+)",
    )
    for pattern in patterns:
        for match in re.finditer(pattern, description, re.IGNORECASE):
            for alias in re.split(r",|\s+and\s+", match.group(1)):
                alias = clean_text(alias)
                if alias and alias != stage and alias not in aliases:
                    aliases.append(alias)
    names["aliases"] = aliases
    return names


def extract_company(soup: BeautifulSoup) -> Dict[str, Any]:
    company: Dict[str, Any] = {}
    history = []
    for cell in soup.select("#star-companies .cell"):
        name_el = cell.select_one(".name a") or cell.select_one(".name")
        name = clean_text(name_el.get_text(" ")) if name_el else ""
        if not name or ":" in name:
            continue
        value = cell.select_one(".value")
        entry: Dict[str, Any] = {"name": name}
        period = parse_period(value.get_text(" ") if value else "")
        if period:
            entry["period"] = period
        history.append(entry)
    if history:
        company["current"] = history[0]["name"]
        company["history"] = history
    return company


def extract_social_media(soup: BeautifulSoup) -> Dict[str, str]:
    social: Dict[str, str] = {}
    for link in soup.select(".socials a, .social-media a"):
        href = link.get("href")
        if not href or "kpopping.com" in href or "discord.gg" in href:
            continue
        domain = urlparse(href).netloc.lower()
        if not domain:
            continue
        if domain.startswith("www."):
            domain = domain[4:]
        for needle, platform in SOCIAL_DOMAINS:
            if domain == needle or domain.endswith("." + needle):
                social[platform] = href
                break
        else:
            if "google.com" not in domain:
                social["website"] = href
    return social


def extract_facts(soup: BeautifulSoup) -> List[str]:
    facts: List[str] = []
    for item in soup.select(".facts li, .fun-facts li, .funfacts li, .profile-facts li"):
        text = clean_text(item.get_text(" "))
        if len(text) > 10 and "fact:" not in text.lower() and text not in facts:
            facts.append(text)
    for paragraph in soup.find_all("p"):
        text = clean_text(paragraph.get_text(" "))
        lowered = text.lower()
        if "fact:" in lowered:
            fact = text[lowered.index("fact:") + len("fact:"):].strip()
            if len(fact) > 10 and fact not in facts:
                facts.append(fact)
    return facts


def _measure(text: str, unit: str, low: float, high: float) -> Optional[float]:
    match = re.search(rf"(\d+(?:\.\d+)?)\s*{unit}", text, re.IGNORECASE)
    if not match:
        return None
    value = float(match.group(1))
    return value if low <= value <= high else None


def extract_physical_info(soup: BeautifulSoup) -> Dict[str, Any]:
    info: Dict[str, Any] = {
        "birthDate": normalize_date(_grid_value(soup, "Birthday:")),
        "height": _measure(_grid_value(soup, "Height:"), "cm", 140, 200),
        "weight": _measure(_grid_value(soup, "Weight:"), "kg", 30, 120),
        "bloodType": normalize_blood_type(_grid_value(soup, "Blood type:")),
        "mbti": None,
    }
    mbti_text = _grid_value(soup, "MBTI:")
    match = re.search(r"\b([IE][NS][FT][JP](?:-[AT])?)\b", mbti_text.upper())
    if match:
        info["mbti"] = match.group(1)
    return info


def extract_career_info(soup: BeautifulSoup) -> Dict[str, Any]:
    info: Dict[str, Any] = {"debutDate": normalize_date(_grid_value(soup, "Debut:"))}

    active_years = _grid_value(soup, "Active years:")
    if active_years:
        start, _, end = (part.strip() for part in active_years.partition("-"))
        if start.isdigit():
            period = {"start": f"{start}-01-01"}
            if end.isdigit():
                period["end"] = f"{end}-12-31"
            info["activeYears"] = [period]

    appearances = []
    for link in soup.select('a[href*="/survivalshow/"], a[href*="/drama/"]'):
        name = clean_text(link.get_text(" "))
        href = link.get("href") or ""
        if not name:
            continue
        year = re.search(r"/(\d{4})-", href)
        appearances.append({
            "name": name,
            "type": "survival" if "survivalshow" in href else "drama",
            "year": year.group(1) if year else None,
        })
    info["showAppearances"] = appearances
    return info


def extract_group_history(soup: BeautifulSoup) -> List[Dict[str, str]]:
    groups = []
    for label, status in (("Current group:", "current"), ("Former group", "former")):
        cell = _grid_cell(soup, label)
        if cell is None:
            continue
        for link in cell.find_all("a"):
            name = clean_text(link.get_text(" "))
            if name:
                groups.append({"groupName": name, "status": status})
    return groups


def _split_list(text: str) -> List[str]:
    items = []
    for item in re.split(r"[,，、]|\s+and\s+", text):
        item = clean_text(item)
        if item and item not in items:
            items.append(item)
    return items


def _from_facts(facts: List[str], pattern: str) -> List[str]:
    found = []
    for fact in facts:
        match = re.search(pattern, fact, re.IGNORECASE)
        if match:
            found.extend(_split_list(match.group(1)))
    return found


def _merge_unique(*groups: List[str]) -> List[str]:
    merged: List[str] = []
    for group in groups:
        for item in group:
            if item not in merged:
                merged.append(item)
    return merged


def extract_nationality(soup: BeautifulSoup) -> Optional[str]:
    """First nationality from flag icons, then the ``Country:`` row."""
    for flag in soup.select(".flag-icon"):
        for css_class in flag.get("class") or []:
            match = re.match(r"flag-icon-(\w{2})$", css_class)
            if match and match.group(1).upper() in ISO_COUNTRIES:
                return ISO_COUNTRIES[match.group(1).upper()]
    countries = _split_list(_grid_value(soup, "Country:"))
    return countries[0] if countries else None


def extract_education(soup: BeautifulSoup) -> List[Dict[str, str]]:
    education = []
    for school in _split_list(_grid_value(soup, "Education:")):
        entry = {"school": school}
        lowered = school.lower()
        if "graduated" in lowered:
            entry["status"] = "graduated"
        elif "attending" in lowered:
            entry["status"] = "attending"
        if "high school" in lowered:
            entry["type"] = "high school"
        elif "university" in lowered:
            entry["type"] = "university"
        education.append(entry)
    return education


def extract_languages(soup: BeautifulSoup) -> List[str]:
    languages = []
    for language in _split_list(_grid_value(soup, "Language")):
        language = LANGUAGE_NAMES.get(language.lower(), language)
        if language not in languages:
            languages.append(language)
    return languages


def extract_hobbies(soup: BeautifulSoup, facts: List[str]) -> List[str]:
    return _merge_unique(
        _split_list(_grid_value(soup, "Hobbies:")),
        _split_list(_grid_value(soup, "Interests:")),
        _from_facts(facts, r"(?:hobby is|hobbies are|hobbies include|likes to)\s+([^.]+)"),
    )


def extract_specialties(soup: BeautifulSoup, facts: List[str]) -> List[str]:
    return _merge_unique(
        _split_list(_grid_value(soup, "Specialties:")),
        _split_list(_grid_value(soup, "Skills:")),
        _from_facts(facts, r"(?:specializes in|specialty is|good at)\s+([^.]+)"),
    )


def extract_personal_info(soup: BeautifulSoup, facts: Optional[List[str]] = None) -> Dict[str, Any]:
    facts = extract_facts(soup) if facts is None else facts
    return {
        "nationality": extract_nationality(soup),
        "hometown": _grid_value(soup, "Hometown:") or None,
        "education": extract_education(soup),
        "languages": extract_languages(soup),
        "hobbies": extract_hobbies(soup, facts),
        "specialties": extract_specialties(soup, facts),
    }


def extract_group_info(soup: BeautifulSoup) -> Dict[str, Any]:
    info: Dict[str, Any] = {
        "debutDate": normalize_date(_grid_value(soup, "Debut:")),
        "disbandmentDate": normalize_date(_grid_value(soup, "Disbandment:")),
    }
    debut_song = _grid_value(soup, "Debut song:")
    if debut_song:
        info["debutSong"] = clean_text(debut_song.split("(")[0]) or None

    generation = re.search(r"(\d+)", _grid_value(soup, "Generation:"))
    if generation and 0 < int(generation.group(1)) < 10:
        info["generation"] = int(generation.group(1))
    return info


def normalize_color(text: Optional[str]) -> Optional[str]:
    """Named, ``#rrggbb`` or ``rgb(r, g, b)`` colour as upper-case hex."""
    normalized = clean_text(text).lower()
    if not normalized:
        return None
    if normalized in COLOR_NAMES:
        return COLOR_NAMES[normalized]
    match = re.search(r"#[0-9a-f]{6}\b", normalized)
    if match:
        return match.group(0).upper()
    match = re.search(r"rgb\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*\)", normalized)
    if match:
        channels = [min(255, int(part)) for part in match.groups()]
        return "#" + "".join(f"{c:02X}" for c in channels)
    for name, value in COLOR_NAMES.items():
        if name in normalized:
            return value
    return None


def extract_lightstick(soup: BeautifulSoup) -> Optional[Dict[str, Any]]:
    info = soup.select_one(".lightstick-info")
    text = clean_text(info.get_text(" ")) if info is not None else ""
    grid_text = _grid_value(soup, "Light stick:") or _grid_value(soup, "Lightstick:")
    image = soup.select_one('img[alt*="lightstick" i]')
    if not (text or grid_text or image is not None):
        return None

    described = text or grid_text
    lightstick: Dict[str, Any] = {"description": text or None}
    named = re.search(r"(?:called|named)\s+[\"']([^\"']+)[\"']", described, re.IGNORECASE)
    if named:
        lightstick["name"] = clean_text(named.group(1))
    elif grid_text:
        lightstick["name"] = clean_text(re.split(r"\(|ver\.|version", grid_text, flags=re.IGNORECASE)[0]) or None
    version = re.search(r"(?:ver\.|version)\s*(\d+(?:\.\d+)?)", described, re.IGNORECASE)
    if version:
        lightstick["version"] = version.group(1)
    if image is not None and "//" in (image.get("src") or ""):
        lightstick["imageUrl"] = image["src"]
    return lightstick


def extract_fandom(soup: BeautifulSoup) -> Dict[str, Any]:
    name = _grid_value(soup, "Fandom name:")
    if not name:
        element = soup.select_one(".fandom-name")
        name = clean_text(element.get_text(" ")) if element else ""
    color = _grid_value(soup, "Fandom color:") or _grid_value(soup, "Official color:")
    return {
        "name": name.strip("\"'") or None,
        "color": normalize_color(color),
        "lightstick": extract_lightstick(soup),
    }


def _members(soup: BeautifulSoup, selector: str) -> List[Dict[str, Any]]:
    members = []
    for element in soup.select(selector):
        name_el = element.select_one(".name")
        name = clean_text(name_el.get_text(" ")) if name_el else ""
        if not name:
            continue
        member: Dict[str, Any] = {"name": name}
        link = element.find("a", href=True)
        if link:
            member["profileUrl"] = absolute_url(link["href"])
        position_el = element.select_one(".position, .role")
        positions = parse_positions(position_el.get_text(" ") if position_el else "")
        if positions:
            member["position"] = positions
        period_el = element.select_one(".period")
        period = parse_period(period_el.get_text(" ") if period_el else "")
        if period:
            member["period"] = period
        members.append(member)
    return members


def extract_group_members(soup: BeautifulSoup) -> Dict[str, List[Dict[str, Any]]]:
    return {
        "currentMembers": _members(soup, ".members-list .current-member, .members .current-member"),
        "formerMembers": _members(soup, ".members-list .former-member, .members .former-member"),
    }


# =============================================================================
# PUBLIC API
# =============================================================================

def extract_profile_links(html: str) -> List[str]:
    """Absolute idol/group profile URLs on a listing page, in page order."""
    soup = BeautifulSoup(html, "lxml")
    links: List[str] = []
    seen = set()
    for anchor in soup.select('a[href*="/profiles/"]'):
        href = anchor.get("href")
        if not href or ("/idol/" not in href and "/group/" not in href):
            continue
        url = absolute_url(href)
        if "/submission" in url or "/sign-in" in url or url in seen:
            continue
        seen.add(url)
        links.append(url)
    return links


def _current_state(soup: BeautifulSoup) -> str:
    return _grid_value(soup, "Current state:").lower()


def extract_idol(soup: BeautifulSoup, names: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    state = _current_state(soup)
    active = "inactive" not in state
    status = "hiatus" if "hiatus" in state else ("active" if active else "inactive")
    facts = extract_facts(soup)
    return {
        "names": extract_names(soup) if names is None else names,
        "imageUrl": extract_image_url(soup),
        "description": _meta_description(soup),
        "active": active,
        "status": status,
        "company": extract_company(soup),
        "socialMedia": extract_social_media(soup),
        "physicalInfo": extract_physical_info(soup),
        "personalInfo": extract_personal_info(soup, facts),
        "careerInfo": extract_career_info(soup),
        "groups": extract_group_history(soup),
        "facts": facts,
    }


def extract_group(soup: BeautifulSoup, category: Category, names: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    state = _current_state(soup)
    if "disbanded" in state:
        status = "disbanded"
    elif "hiatus" in state:
        status = "hiatus"
    elif "sub-unit" in state:
        status = "sub-unit"
    elif "inactive" in state:
        status = "inactive"
    else:
        status = "active"

    members = extract_group_members(soup)
    current = len(members["currentMembers"])
    return {
        "names": extract_names(soup) if names is None else names,
        "imageUrl": extract_image_url(soup),
        "description": _meta_description(soup),
        "active": status == "active",
        "status": status,
        "type": GROUP_TYPES[category],
        "memberCount": {"current": current, "peak": current + len(members["formerMembers"])},
        "memberHistory": members,
        "company": extract_company(soup),
        "socialMedia": extract_social_media(soup),
        "groupInfo": extract_group_info(soup),
        "fandom": extract_fandom(soup),
        "facts": extract_facts(soup),
    }


def extract(document: str, category: Category, url: str) -> Profile:
    """
    Turn a profile page into a ``Profile`` with a fresh id.

    Raises:
        ExtractionError: if the page has no profile heading or cannot be parsed.
    """
    try:
        soup = BeautifulSoup(document, "lxml")
        names = extract_names(soup)
        if not names["stage"]:
            raise ExtractionError(f"No profile name found on {url}")
        if category.kind is ProfileKind.IDOL:
            payload = extract_idol(soup, names)
        else:
            payload = extract_group(soup, category, names)
    except ExtractionError:
        raise
    except Exception as e:
        raise ExtractionError(f"Failed to parse {url}: {type(e).__name__}: {e}") from e

    return Profile(profile_url=url, kind=category.kind, payload=prune(payload))
