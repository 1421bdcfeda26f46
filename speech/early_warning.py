"""Early-warning gate over analyzer confidence, and the report it produces."""

import logging
from typing import Optional

from core.models import Category, Severity, Source, SpeechMetrics

logger = logging.getLogger("distress_api.speech.early_warning")

EARLY_WARNING_KEYWORD = "EARLY_WARNING"


class EarlyWarningTrigger:
    """
    Per-session dedup: fires the first time confidence reaches the threshold, then stays
    quiet for the rest of the session. Only reset() (a capture restart) arms it again.
    """

    def __init__(self, threshold: int = 60):
        self.threshold = threshold
        self._armed = True
        self.fired_count = 0

    @property
    def fired(self) -> bool:
        return not self._armed

    def check(self, metrics: SpeechMetrics) -> bool:
        if not self._armed or metrics.confidence < self.threshold:
            return False
        self._armed = False
        self.fired_count += 1
        logger.info("early warning fired confidence=%d indicators=%s", metrics.confidence, metrics.stress_indicators)
        return True

    def reset(self) -> None:
        self._armed = True


def severity_for_confidence(confidence: float) -> Severity:
    if confidence >= 80:
        return Severity.HIGH
    if confidence >= 60:
        return Severity.MEDIUM
    return Severity.LOW


def early_warning_description(metrics: SpeechMetrics) -> str:
    lines = [
        "Early Warning Alert - Distress Detected",
        "",
        f"Confidence Score: {metrics.confidence}%",
        "",
        "Stress Indicators:",
    ]
    lines.extend(f"• {indicator}" for indicator in metrics.stress_indicators)
    lines.extend([
        "",
        "Speech Metrics:",
        f"• Speaking Speed: {metrics.words_per_second:.2f} words/second",
        f"• Repeated Words: {metrics.repeated_words}",
        f"• Pause Count: {metrics.pause_count}",
        "",
        "This alert was triggered based on speech pattern analysis before any explicit threat keywords were detected.",
    ])
    return "\n".join(lines)


def build_early_warning_report(
    metrics: SpeechMetrics,
    latitude: float,
    longitude: float,
    description: Optional[str] = None,
) -> dict:
    """Fields for InMemoryReportStore.create. A caller-supplied description replaces the generated one."""
    return {
        "keyword": EARLY_WARNING_KEYWORD,
        "description": description or early_warning_description(metrics),
        "category": Category.OTHER,
        "severity": severity_for_confidence(metrics.confidence),
        "latitude": latitude,
        "longitude": longitude,
        "source": Source.AI,
        "speech_metrics": metrics,
    }
