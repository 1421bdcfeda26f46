"""Danger-keyword matching on final transcript fragments (no external services)."""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from core.models import Category, Severity, Source, SpeechMetrics

logger = logging.getLogger("distress_api.keyword_extractor")


@dataclass(frozen=True)
class KeywordMatch:
    keyword: str
    category: Category
    description: str


# Order matters (more specific first); one match per keyword.
KEYWORD_PHRASES = [
    (re.compile(r"\b(gas\s+leak|smell\s+(of\s+)?gas)\b", re.I), "gas leak", Category.GAS_LEAK, "Possible gas leak reported"),
    (re.compile(r"\b(fire|smoke|burning|flames?)\b", re.I), "fire", Category.FIRE, "Fire or smoke reported"),
    (re.compile(r"\b(gun\s*shots?|shooting|shot\s+at|\bgun\b)", re.I), "gun", Category.ASSAULT, "Firearm or shooting reported"),
    (re.compile(r"\b(knife|stabbed|stabbing)\b", re.I), "knife", Category.ASSAULT, "Knife or stabbing reported"),
    (re.compile(r"\b(attack(ed|ing)?|assault(ed)?|hitting\s+me|beat(ing)?\s+me)\b", re.I), "attack", Category.ASSAULT, "Physical attack reported"),
    (re.compile(r"\b(kidnap(ped|ping)?|abduct(ed|ion)?)\b", re.I), "kidnap", Category.ASSAULT, "Possible abduction reported"),
    (re.compile(r"\b(following\s+me|stalk(ing|er)?)\b", re.I), "following", Category.ASSAULT, "Speaker reports being followed"),
    (re.compile(r"\b(rob(bed|bery)?|steal(ing)?|stole|thief|snatch(ed)?)\b", re.I), "robbery", Category.THEFT, "Theft or robbery reported"),
    (re.compile(r"\b(break[- ]?in|burglar(y)?|breaking\s+in)\b", re.I), "break-in", Category.THEFT, "Break-in reported"),
    (re.compile(r"\b(car\s+)?(accident|crash|collision)\b", re.I), "accident", Category.ACCIDENT, "Accident reported"),
    (re.compile(r"\bflood(ing|ed)?\b", re.I), "flood", Category.FLOOD, "Flooding reported"),
    (re.compile(r"\b(heart\s+attack|can'?t\s+breathe|unconscious|bleeding|ambulance|seizure)\b", re.I), "medical", Category.MEDICAL, "Medical emergency reported"),
    (re.compile(r"\b(help(\s+me)?|emergency|save\s+me|call\s+(the\s+)?police)\b", re.I), "help", Category.OTHER, "Call for help detected"),
]

STRESS_HIGH_CONFIDENCE = 60


def detect_keywords(text: str) -> list[KeywordMatch]:
    """Return every keyword whose phrase occurs in text, in table order."""
    if not text or not text.strip():
        return []
    matches = []
    for rx, keyword, category, description in KEYWORD_PHRASES:
        if rx.search(text):
            matches.append(KeywordMatch(keyword=keyword, category=category, description=description))
    if matches:
        logger.info("keywords detected text_len=%d keywords=%s", len(text), [m.keyword for m in matches])
    return matches


def keyword_severity(metrics: Optional[SpeechMetrics]) -> Severity:
    """HIGH when the speaker also sounds stressed, else MEDIUM."""
    if metrics is not None and metrics.confidence >= STRESS_HIGH_CONFIDENCE:
        return Severity.HIGH
    return Severity.MEDIUM


def build_keyword_report(
    match: KeywordMatch,
    latitude: float,
    longitude: float,
    metrics: Optional[SpeechMetrics] = None,
    transcript: str = "",
) -> dict:
    """Fields for InMemoryReportStore.create; the stress snapshot is attached when available."""
    description = match.description
    if transcript.strip():
        description = f"{description}: \"{transcript.strip()[:200]}\""
    return {
        "keyword": match.keyword,
        "description": description,
        "category": match.category,
        "severity": keyword_severity(metrics),
        "latitude": latitude,
        "longitude": longitude,
        "source": Source.VOICE,
        "speech_metrics": metrics,
    }
