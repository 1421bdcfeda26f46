"""Speech stress analysis: tokenizer, sliding-window analyzer, early-warning gate, sessions."""

from speech.text import extract_words
from speech.analyzer import SpeechStressAnalyzer, StressConfig
from speech.early_warning import EarlyWarningTrigger, build_early_warning_report, severity_for_confidence
from speech.sessions import SessionRegistry, SessionNotFoundError

__all__ = [
    "extract_words",
    "SpeechStressAnalyzer",
    "StressConfig",
    "EarlyWarningTrigger",
    "build_early_warning_report",
    "severity_for_confidence",
    "SessionRegistry",
    "SessionNotFoundError",
]
