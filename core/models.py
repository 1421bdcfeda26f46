"""Report and speech-metric models: plain dataclasses with to_dict() for the API."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Source(str, Enum):
    VOICE = "VOICE"
    MANUAL = "MANUAL"
    AI = "AI"


class Category(str, Enum):
    FIRE = "FIRE"
    MEDICAL = "MEDICAL"
    ASSAULT = "ASSAULT"
    THEFT = "THEFT"
    ACCIDENT = "ACCIDENT"
    GAS_LEAK = "GAS_LEAK"
    FLOOD = "FLOOD"
    OTHER = "OTHER"


@dataclass
class SpeechEvent:
    text: str
    timestamp: float  # ms, from the analyzer's monotonic clock
    is_final: bool


@dataclass
class SpeechMetrics:
    words_per_second: float = 0.0
    repeated_words: int = 0
    pause_count: int = 0
    average_pause_duration_ms: float = 0.0
    confidence: int = 0  # 0 - 100
    stress_indicators: list = field(default_factory=list)

    def to_dict(self):
        return {
            "words_per_second": round(self.words_per_second, 4),
            "repeated_words": self.repeated_words,
            "pause_count": self.pause_count,
            "average_pause_duration_ms": round(self.average_pause_duration_ms, 2),
            "confidence": self.confidence,
            "stress_indicators": list(self.stress_indicators),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SpeechMetrics":
        """Lenient parse of a client-supplied snapshot; missing values become zero."""
        return cls(
            words_per_second=float(data.get("words_per_second") or 0),
            repeated_words=int(data.get("repeated_words") or 0),
            pause_count=int(data.get("pause_count") or 0),
            average_pause_duration_ms=float(data.get("average_pause_duration_ms") or 0),
            confidence=int(data.get("confidence") or 0),
            stress_indicators=[str(s) for s in (data.get("stress_indicators") or [])],
        )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Report:
    id: str
    keyword: str
    description: str
    latitude: float
    longitude: float
    category: Category = Category.OTHER
    severity: Severity = Severity.LOW
    source: Source = Source.VOICE
    is_resolved: bool = False
    created_at: datetime = field(default_factory=utcnow)
    speech_metrics: Optional[SpeechMetrics] = None

    def to_dict(self):
        d = {
            "id": self.id,
            "keyword": self.keyword,
            "description": self.description,
            "category": self.category.value,
            "severity": self.severity.value,
            "latitude": round(self.latitude, 6),
            "longitude": round(self.longitude, 6),
            "source": self.source.value,
            "is_resolved": self.is_resolved,
            "created_at": self.created_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        if self.speech_metrics is not None:
            d["speech_metrics"] = self.speech_metrics.to_dict()
        return d
