"""Core report and speech-metric models plus the report store."""

from core.models import Report, SpeechEvent, SpeechMetrics, Severity, Source, Category
from core.store import InMemoryReportStore, ReportQuery

__all__ = [
    "Report",
    "SpeechEvent",
    "SpeechMetrics",
    "Severity",
    "Source",
    "Category",
    "InMemoryReportStore",
    "ReportQuery",
]
