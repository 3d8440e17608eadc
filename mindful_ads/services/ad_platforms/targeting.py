"""Audience-text heuristics shared by the ad platform clients."""

from __future__ import annotations

import re
from typing import Any, Optional

META_OBJECTIVES = {
    "awareness": "REACH",
    "traffic": "LINK_CLICKS",
    "leads": "LEAD_GENERATION",
    "conversions": "CONVERSIONS",
    "engagement": "ENGAGEMENT",
    "video-views": "VIDEO_VIEWS",
}
DEFAULT_META_OBJECTIVE = "REACH"

MENTAL_HEALTH_BEHAVIOR = {"id": "6017253486583", "name": "Interested in mental health and wellness"}
BASE_INTERESTS = [
    {"id": "6003277229502", "name": "Mental health"},
    {"id": "6003348617349", "name": "Therapy"},
]
PSYCHOLOGY_INTERESTS = BASE_INTERESTS + [
    {"id": "6003144207542", "name": "Psychology"},
    {"id": "6003139266461", "name": "Wellness"},
]
LIFE_EVENTS = [
    {"id": "6002714398372", "name": "Recently moved"},
    {"id": "6002714398432", "name": "New job"},
    {"id": "6015559470583", "name": "Major life change"},
]
CONDITION_INTERESTS = (
    (("anxiety",), {"id": "6003120596077", "name": "Anxiety"}),
    (("depression",), {"id": "6003139938061", "name": "Depression awareness"}),
    (("couples", "relationship"), {"id": "6003139817726", "name": "Relationship counseling"}),
)

SEED_KEYWORDS = [
    "therapy",
    "counseling",
    "psychologist",
    "mental health",
    "anxiety treatment",
    "depression help",
]
AUDIENCE_KEYWORDS = (
    (("women", "female"), ["women therapy", "female counseling"]),
    (("men", "male"), ["men therapy", "male counseling"]),
    (("couples",), ["couples therapy", "marriage counseling"]),
    (("family",), ["family therapy", "family counseling"]),
    (("teen", "teens", "adolescent", "adolescents"), ["teen therapy", "adolescent counseling"]),
    (("anxiety",), ["anxiety therapy", "anxiety treatment", "panic disorder help"]),
    (("depression",), ["depression therapy", "depression treatment", "mood disorders"]),
    (("trauma",), ["trauma therapy", "PTSD treatment", "trauma counseling"]),
    (("addiction",), ["addiction therapy", "substance abuse counseling"]),
)
MAX_KEYWORDS = 10


def _words(text: str) -> set[str]:
    return set(re.findall(r"[a-z]+", (text or "").lower()))


def _mentions(words: set[str], *terms: str) -> bool:
    return any(term in words for term in terms)


def map_objective_to_meta(objective: Optional[str]) -> str:
    if not objective:
        return DEFAULT_META_OBJECTIVE
    return META_OBJECTIVES.get(objective.strip().lower(), DEFAULT_META_OBJECTIVE)


def _apply_demographics(targeting: dict[str, Any], words: set[str]) -> None:
    if _mentions(words, "women", "woman", "female"):
        targeting["genders"] = [2]
    elif _mentions(words, "men", "man", "male"):
        targeting["genders"] = [1]

    if _mentions(words, "young", "college"):
        targeting["age_min"], targeting["age_max"] = 18, 35
    elif _mentions(words, "senior", "seniors", "elderly"):
        targeting["age_min"], targeting["age_max"] = 55, 65


def build_targeting(target_audience: str) -> dict[str, Any]:
    targeting: dict[str, Any] = {
        "age_min": 25,
        "age_max": 65,
        "genders": [1, 2],
        "geo_locations": {"countries": ["US"]},
        "interests": [dict(item) for item in BASE_INTERESTS],
        "behaviors": [dict(MENTAL_HEALTH_BEHAVIOR)],
    }
    _apply_demographics(targeting, _words(target_audience))
    return targeting


def build_psychology_targeting(target_audience: str, city: Optional[str] = None) -> dict[str, Any]:
    words = _words(target_audience)
    geo: dict[str, Any] = {"countries": ["US"]}
    if city:
        geo["cities"] = [
            {"key": re.sub(r"\s+", "_", city.strip()).lower(), "radius": 25, "distance_unit": "mile"}
        ]
    targeting: dict[str, Any] = {
        "age_min": 25,
        "age_max": 65,
        "genders": [1, 2],
        "geo_locations": geo,
        "interests": [dict(item) for item in PSYCHOLOGY_INTERESTS],
        "behaviors": [dict(MENTAL_HEALTH_BEHAVIOR)],
        "life_events": [dict(item) for item in LIFE_EVENTS],
    }
    for terms, interest in CONDITION_INTERESTS:
        if _mentions(words, *terms):
            targeting["interests"].append(dict(interest))
    _apply_demographics(targeting, words)
    return targeting


def extract_keywords(target_audience: str) -> list[str]:
    words = _words(target_audience)
    keywords: list[str] = []
    for terms, extra in AUDIENCE_KEYWORDS:
        if _mentions(words, *terms):
            keywords.extend(extra)
    return keywords


def psychology_keywords(target_audience: str, limit: int = MAX_KEYWORDS) -> list[str]:
    audience_specific = extract_keywords(target_audience)
    combined: list[str] = []
    for keyword in audience_specific + SEED_KEYWORDS:
        if keyword not in combined:
            combined.append(keyword)
    return combined[:limit]
