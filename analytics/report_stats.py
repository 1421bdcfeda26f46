"""
Dashboard aggregates computed over the report store (no Snowflake needed):

- totals: all reports, HIGH severity, still unresolved
- category_data: report count per category
- time_series_data: report count per UTC hour of day
- speech_stress_stats: confidence / speed averages and bands over reports that carry a
  stress snapshot, plus the most common indicator types ("Rapid speech", ...)
"""

import logging
import math
from collections import Counter
from typing import Optional

from core.models import Report, Severity, SpeechMetrics

logger = logging.getLogger("distress_api.analytics.report_stats")

HIGH_STRESS_CONFIDENCE = 60
MEDIUM_STRESS_CONFIDENCE = 40
SLOW_WPS = 1.5
FAST_WPS = 3.0
TOP_INDICATORS = 5
RECENT_REPORTS = 5


def _round_half_up(x: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(x * scale + 0.5) / scale


def indicator_type(indicator: str) -> str:
    """'Rapid speech (4.2 wps)' -> 'Rapid speech'."""
    return indicator.split("(")[0].strip()


def speech_stress_stats(snapshots: list[SpeechMetrics]) -> dict:
    total = len(snapshots)
    if total == 0:
        return {
            "total_analyzed": 0,
            "average_confidence": 0,
            "average_words_per_second": 0.0,
            "high_stress_count": 0,
            "confidence_distribution": {"low": 0, "medium": 0, "high": 0},
            "words_per_second_ranges": {"slow": 0, "normal": 0, "fast": 0},
            "common_indicators": [],
        }
    confidences = [m.confidence for m in snapshots]
    speeds = [m.words_per_second for m in snapshots]
    indicators = Counter(indicator_type(i) for m in snapshots for i in m.stress_indicators)
    high = sum(1 for c in confidences if c >= HIGH_STRESS_CONFIDENCE)
    return {
        "total_analyzed": total,
        "average_confidence": int(_round_half_up(sum(confidences) / total)),
        "average_words_per_second": _round_half_up(sum(speeds) / total, 1),
        "high_stress_count": high,
        "confidence_distribution": {
            "low": sum(1 for c in confidences if c < MEDIUM_STRESS_CONFIDENCE),
            "medium": sum(1 for c in confidences if MEDIUM_STRESS_CONFIDENCE <= c < HIGH_STRESS_CONFIDENCE),
            "high": high,
        },
        "words_per_second_ranges": {
            "slow": sum(1 for s in speeds if s < SLOW_WPS),
            "normal": sum(1 for s in speeds if SLOW_WPS <= s < FAST_WPS),
            "fast": sum(1 for s in speeds if s >= FAST_WPS),
        },
        "common_indicators": [
            {"indicator": name, "count": count} for name, count in indicators.most_common(TOP_INDICATORS)
        ],
    }


def report_analytics(reports: list[Report]) -> dict:
    """Aggregate a list of reports (any order) into the dashboard payload."""
    ordered = sorted(reports, key=lambda r: r.created_at)
    categories = Counter(r.category.value for r in ordered)
    hours = Counter(r.created_at.hour for r in ordered)
    last: Optional[Report] = ordered[-1] if ordered else None
    snapshots = [r.speech_metrics for r in ordered if r.speech_metrics is not None]
    logger.debug("analytics over reports=%d with_stress=%d", len(ordered), len(snapshots))
    return {
        "total_reports": len(ordered),
        "critical_alerts": sum(1 for r in ordered if r.severity == Severity.HIGH),
        "in_progress": sum(1 for r in ordered if not r.is_resolved),
        "category_data": [{"name": name, "count": count} for name, count in categories.items()],
        "time_series_data": [
            {"hour": hour, "count": hours[hour], "time": f"{hour}:00"} for hour in sorted(hours)
        ],
        "last_report_at": last.to_dict()["created_at"] if last else None,
        "recent_reports": [r.to_dict() for r in reversed(ordered[-RECENT_REPORTS:])],
        "speech_stress_stats": speech_stress_stats(snapshots),
    }
