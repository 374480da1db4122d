"""Tests for listing discovery and profile extraction."""

import pytest

from kdapi import extractor

from kdapi.config import BASE_URL
from kdapi.errors import ExtractionError
from kdapi.extractor import (
    clean_text,
    extract,
    extract_profile_links,
    normalize_blood_type,
    normalize_color,
    normalize_date,
    parse_period,
    parse_positions,
)
from kdapi.models import Category, ProfileKind

from conftest import group_url, idol_url, listing_page, profile_page

IDOL_EXTRA = """
<div class="native-name">Korean: 김지수</div>
<div class="socials">
  <a href="https://www.instagram.com/sooyaaa__">Instagram</a>
  <a href="https://x.com/jisoo">X</a>
  <a href="https://kpopping.com/profiles/idol/Jisoo">self</a>
  <a href="https://jisoo.example.org/">Site</a>
</div>
<ul class="facts">
  <li>She was a trainee for about six years.</li>
  <li>short</li>
</ul>
"""

IDOL_GRID = {
    "Full name:": "Kim Ji Soo",
    "Birthday:": "January 3rd, 1995",
    "Height:": "162 cm",
    "Weight:": "45 kg",
    "Blood type:": "type A",
    "MBTI:": "INTP-T",
    "Debut:": "2016.08.08",
    "Current state:": "Active",
    "Current group:": '<a href="/profiles/group/BLACKPINK">BLACKPINK</a>',
}

GROUP_EXTRA = """
<div class="members-list">
  <div class="current-member">
    <a href="/profiles/idol/Taeyeon"><span class="name">Taeyeon</span></a>
    <span class="position">Leader, Main Vocalist</span>
  </div>
  <div class="former-member">
    <span class="name">Jessica</span>
    <span class="position">Main Vocal / Visual</span>
    <span class="period">2007-08 ~ 2014-09</span>
  </div>
</div>
"""

GROUP_GRID = {
    "Current state:": "Disbanded",
    "Debut:": "2007-08-05",
    "Disbandment:": "2017-11-01",
    "Debut song:": "Into the New World (다시 만난 세계)",
    "Fandom name:": "SONE",
    "Generation:": "2nd",
}


def test_profile_links_are_absolute_and_deduplicated():
    html = listing_page([
        "/profiles/idol/Jisoo",
        "/profiles/idol/Jisoo",
        f"{BASE_URL}/profiles/group/BLACKPINK",
        "/profiles/the-idols/women",
        "/profiles/idol/submission",
        "/news/123",
    ])

    assert extract_profile_links(html) == [idol_url("Jisoo"), group_url("BLACKPINK")]


def test_idol_profile_fields():
    url = idol_url("Jisoo")
    profile = extract(profile_page("Jisoo", IDOL_GRID, IDOL_EXTRA), Category.FEMALE_IDOLS, url)

    assert profile.profile_url == url
    assert profile.kind is ProfileKind.IDOL
    payload = profile.payload
    assert payload["names"]["stage"] == "Jisoo"
    assert payload["names"]["korean"] == "김지수"
    assert payload["names"]["birth"] == {"latin": "Kim Ji Soo"}
    assert payload["active"] is True
    assert payload["status"] == "active"
    assert payload["imageUrl"].endswith("/documents/Jisoo.jpg")
    assert payload["physicalInfo"] == {
        "birthDate": "1995-01-03",
        "height": 162.0,
        "weight": 45.0,
        "bloodType": "A",
        "mbti": "INTP-T",
    }
    assert payload["careerInfo"]["debutDate"] == "2016-08-08"
    assert payload["groups"] == [{"groupName": "BLACKPINK", "status": "current"}]
    assert payload["socialMedia"] == {
        "instagram": "https://www.instagram.com/sooyaaa__",
        "twitter": "https://x.com/jisoo",
        "website": "https://jisoo.example.org/",
    }
    assert payload["facts"] == ["She was a trainee for about six years."]


def test_each_extraction_gets_a_fresh_id():
    page = profile_page("Jisoo")
    first = extract(page, Category.FEMALE_IDOLS, idol_url("Jisoo"))
    second = extract(page, Category.FEMALE_IDOLS, idol_url("Jisoo"))
    assert first.id != second.id


def test_missing_fields_are_omitted():
    payload = extract(profile_page("Minimal"), Category.MALE_IDOLS, idol_url("Minimal")).payload

    assert "physicalInfo" not in payload
    assert "socialMedia" not in payload
    assert "groups" not in payload
    assert payload["names"] == {"stage": "Minimal"}


def test_group_profile_fields():
    url = group_url("SNSD")
    profile = extract(profile_page("Girls' Generation", GROUP_GRID, GROUP_EXTRA), Category.GIRL_GROUPS, url)

    payload = profile.payload
    assert profile.kind is ProfileKind.GROUP
    assert payload["type"] == "girl"
    assert payload["status"] == "disbanded"
    assert payload["active"] is False
    assert payload["memberCount"] == {"current": 1, "peak": 2}
    assert payload["groupInfo"] == {
        "debutDate": "2007-08-05",
        "disbandmentDate": "2017-11-01",
        "debutSong": "Into the New World",
        "generation": 2,
    }
    assert payload["fandom"] == {"name": "SONE"}

    current = payload["memberHistory"]["currentMembers"][0]
    assert current["name"] == "Taeyeon"
    assert current["profileUrl"] == idol_url("Taeyeon")
    assert current["position"] == ["Leader", "Main Vocalist"]

    former = payload["memberHistory"]["formerMembers"][0]
    assert former["position"] == ["Main Vocalist", "Visual"]
    assert former["period"] == {"start": "2007-08-01", "end": "2014-09-01"}


def test_coed_group_type():
    payload = extract(profile_page("KARD"), Category.COED_GROUPS, group_url("KARD")).payload
    assert payload["type"] == "co-ed"
    assert payload["status"] == "active"


def test_page_without_heading_raises():
    with pytest.raises(ExtractionError):
        extract("<html><body><p>nothing</p></body></html>", Category.FEMALE_IDOLS, idol_url("x"))


@pytest.mark.parametrize("text, expected", [
    ("2016-08-08", "2016-08-08"),
    ("2016.8.8", "2016-08-08"),
    ("08/08/2016", "2016-08-08"),
    ("August 8th, 2016", "2016-08-08"),
    ("Aug 8, 2016", "2016-08-08"),
    ("2016-08", "2016-08-01"),
    ("March 2020", "2020-03-01"),
    ("2019", "2019-01-01"),
    ("2016-08-08 (8 years ago)", "2016-08-08"),
    ("2016-02-30", None),
    ("1850-01-01", None),
    ("unknown", None),
    ("", None),
])
def test_normalize_date(text, expected):
    assert normalize_date(text) == expected


@pytest.mark.parametrize("text, expected", [
    ("A", "A"),
    ("type AB", "AB"),
    ("O-", "O-"),
    ("B positive", "B+"),
    ("AB negative", "AB-"),
    ("Blood type: O", "O"),
    ("unknown", None),
    ("", None),
])
def test_normalize_blood_type(text, expected):
    assert normalize_blood_type(text) == expected


def test_parse_positions():
    assert parse_positions("Leader, Main Vocal / Visual") == ["Leader", "Main Vocalist", "Visual"]
    assert parse_positions("Lead Dancer (formerly), Maknae") == ["Lead Dancer", "Maknae"]
    assert parse_positions("youngest & center position") == ["Maknae", "Center"]
    assert parse_positions("") == []


def test_parse_period():
    assert parse_period("2015-01 ~ present") == {"start": "2015-01-01"}
    assert parse_period("2012 - 2018") == {"start": "2012-01-01", "end": "2018-01-01"}
    assert parse_period("no dates") is None


def test_clean_text():
    assert clean_text("  Hello\u200b   \u201cworld\u201d  ") == 'Hello "world"'
    assert clean_text(None) == ""


PERSONAL_GRID = {
    "Country:": "South Korea",
    "Hometown:": "Gunpo, Gyeonggi",
    "Education:": "Hanlim Multi Art School (graduated), Seoul University",
    "Languages:": "korean, english and chinese",
    "Hobbies:": "Drawing, Watching dramas",
    "Specialties:": "Acting",
}

PERSONAL_EXTRA = """
<span class="flag-icon flag-icon-kr"></span>
<ul class="facts">
  <li>Her hobbies are cooking, Drawing.</li>
  <li>She is really good at imitating voices.</li>
</ul>
"""


def test_idol_personal_info():
    page = profile_page("Jisoo", PERSONAL_GRID, PERSONAL_EXTRA)
    info = extract(page, Category.FEMALE_IDOLS, idol_url("Jisoo")).payload["personalInfo"]

    assert info["nationality"] == "South Korea"
    assert info["hometown"] == "Gunpo, Gyeonggi"
    assert info["education"] == [
        {"school": "Hanlim Multi Art School (graduated)", "status": "graduated"},
        {"school": "Seoul University", "type": "university"},
    ]
    assert info["languages"] == ["Korean", "English", "Mandarin"]
    assert info["hobbies"] == ["Drawing", "Watching dramas", "cooking"]
    assert info["specialties"] == ["Acting", "imitating voices"]


def test_nationality_falls_back_to_country_row():
    page = profile_page("Lisa", {"Country:": "Thailand, South Korea"})
    info = extract(page, Category.FEMALE_IDOLS, idol_url("Lisa")).payload["personalInfo"]
    assert info == {"nationality": "Thailand"}


def test_group_fandom_colour_and_lightstick():
    grid = dict(GROUP_GRID, **{"Fandom color:": "Pastel Pink"})
    extra = GROUP_EXTRA + """
<div class="lightstick-info">The official lightstick is called "Hammer Bong" (ver. 2)</div>
<img alt="BLACKPINK lightstick" src="https://kpopping.com/documents/stick.jpg">
"""
    payload = extract(profile_page("BLACKPINK", grid, extra), Category.GIRL_GROUPS, group_url("BLACKPINK")).payload

    assert payload["fandom"]["name"] == "SONE"
    assert payload["fandom"]["color"] == "#FFD1DC"
    lightstick = payload["fandom"]["lightstick"]
    assert lightstick["name"] == "Hammer Bong"
    assert lightstick["version"] == "2"
    assert lightstick["imageUrl"] == "https://kpopping.com/documents/stick.jpg"


@pytest.mark.parametrize("text, expected", [
    ("Pastel Pink", "#FFD1DC"),
    ("#ff00aa", "#FF00AA"),
    ("rgb(255, 0, 170)", "#FF00AA"),
    ("light mint green", "#98FF98"),
    ("unknown", None),
    ("", None),
])
def test_normalize_color(text, expected):
    assert normalize_color(text) == expected


def test_names_are_extracted_once(monkeypatch):
    calls = []
    real = extractor.extract_names

    def counting(soup):
        calls.append(soup)
        return real(soup)

    monkeypatch.setattr(extractor, "extract_names", counting)
    extract(profile_page("Jisoo"), Category.FEMALE_IDOLS, idol_url("Jisoo"))
    extract(profile_page("KARD"), Category.COED_GROUPS, group_url("KARD"))

    assert len(calls) == 2
