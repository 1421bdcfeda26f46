"""
Sliding-window speech stress analysis over recognizer fragments (interim and final).

Features are computed from timing and repetition only, never from word meaning:
speaking speed, excess word repetition, pause count / mean pause length. A fixed
heuristic turns them into a 0-100 confidence and a list of human-readable indicators.

Tunable via env (StressConfig.from_env):
- STRESS_WINDOW_MS: trailing window for speed/pause features (default 30000).
- EARLY_WARNING_THRESHOLD: confidence at which an early warning fires (default 60).
"""

import logging
import math
import os
import time
from collections import Counter, deque
from dataclasses import dataclass
from typing import Callable, Optional

from core.models import SpeechEvent, SpeechMetrics
from speech.text import extract_words

logger = logging.getLogger("distress_api.speech.analyzer")


def _env_float(name: str, default: float) -> float:
    v = os.environ.get(name)
    if v is None or v.strip() == "":
        return default
    try:
        return float(v.strip())
    except ValueError:
        logger.warning("ignoring invalid %s=%r", name, v)
        return default


@dataclass(frozen=True)
class StressConfig:
    window_ms: float = 30_000
    history_size: int = 50
    repetition_span: int = 20
    min_repeat_count: int = 3
    min_word_length: int = 3  # "a", "the"-length words never count as repetition
    min_pause_ms: float = 1000
    fast_speech_wps: float = 3.5
    slow_speech_wps: float = 1.0
    hesitant_pause_count: int = 3
    long_pause_ms: float = 3000
    long_pause_count: int = 2
    repetition_indicator_count: int = 3
    # Score terms: points per unit, capped per term
    fast_points_per_wps: float = 10
    fast_cap: float = 30
    repeat_points: float = 5
    repeat_cap: float = 25
    pause_points: float = 5
    pause_cap: float = 25
    bonus_points: float = 10
    bonus_cap: float = 20
    bonus_min_indicators: int = 2
    early_warning_threshold: int = 60

    @classmethod
    def from_env(cls) -> "StressConfig":
        default = cls()
        return cls(
            window_ms=max(1.0, _env_float("STRESS_WINDOW_MS", default.window_ms)),
            early_warning_threshold=int(max(0.0, min(100.0, _env_float("EARLY_WARNING_THRESHOLD", default.early_warning_threshold)))),
        )


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class SpeechStressAnalyzer:
    """
    One instance per capture session. Not safe for concurrent analyze_event/reset calls;
    callers serialize access per session (see speech.sessions).
    """

    def __init__(self, config: Optional[StressConfig] = None, clock: Callable[[], float] = _monotonic_ms):
        self.config = config or StressConfig()
        self._clock = clock
        self._events: deque = deque()
        self._word_history: deque = deque(maxlen=self.config.history_size)
        self._last_speech_ms: Optional[float] = None

    @property
    def word_history(self) -> list[str]:
        return list(self._word_history)

    @property
    def events(self) -> list[SpeechEvent]:
        return list(self._events)

    def analyze_event(self, text: str, is_final: bool) -> SpeechMetrics:
        """Record one recognizer fragment and return the metrics for the current window."""
        now = self._clock()
        text = (text or "").strip()
        self._events.append(SpeechEvent(text=text, timestamp=now, is_final=is_final))
        self._evict(now)

        words = extract_words(text)
        self._word_history.extend(words)

        wps = self._speaking_speed(now)
        repeated = self._repeated_words()
        pause_count, avg_pause = self._pauses(now)
        indicators = self._indicators(wps, repeated, pause_count, avg_pause)
        confidence = self._confidence(wps, repeated, pause_count, len(indicators))

        if words:
            self._last_speech_ms = now

        return SpeechMetrics(
            words_per_second=wps,
            repeated_words=repeated,
            pause_count=pause_count,
            average_pause_duration_ms=avg_pause,
            confidence=confidence,
            stress_indicators=indicators,
        )

    def should_trigger_early_warning(self, metrics: SpeechMetrics) -> bool:
        return metrics.confidence >= self.config.early_warning_threshold

    def current_metrics(self) -> SpeechMetrics:
        """Metrics as of now, e.g. to refresh the in-progress pause while the speaker is silent."""
        return self.analyze_event("", False)

    def reset(self) -> None:
        self._events = deque()
        self._word_history = deque(maxlen=self.config.history_size)
        self._last_speech_ms = None

    def _evict(self, now: float) -> None:
        cutoff = now - self.config.window_ms
        while self._events and self._events[0].timestamp < cutoff:
            self._events.popleft()

    def _speaking_speed(self, now: float) -> float:
        if not self._events:
            return 0.0
        total_words = sum(len(extract_words(e.text)) for e in self._events)
        span_ms = min(self.config.window_ms, now - self._events[0].timestamp)
        if span_ms <= 0:
            return 0.0
        return total_words / span_ms * 1000.0

    def _repeated_words(self) -> int:
        if len(self._word_history) < self.config.min_repeat_count:
            return 0
        recent = list(self._word_history)[-self.config.repetition_span:]
        counts = Counter(recent)
        # First two occurrences are normal speech; only the excess counts
        excess_from = self.config.min_repeat_count - 1
        return sum(
            count - excess_from
            for word, count in counts.items()
            if count >= self.config.min_repeat_count and len(word) >= self.config.min_word_length
        )

    def _pauses(self, now: float) -> tuple[int, float]:
        if len(self._events) < 2:
            return 0, 0.0
        events = list(self._events)
        pauses = []
        for prev, curr in zip(events, events[1:]):
            if not extract_words(prev.text):
                continue
            gap = curr.timestamp - prev.timestamp
            if gap >= self.config.min_pause_ms:
                pauses.append(gap)
        # Silence still in progress since the last fragment that had words
        if self._last_speech_ms is not None:
            silence = now - self._last_speech_ms
            if silence >= self.config.min_pause_ms:
                pauses.append(silence)
        if not pauses:
            return 0, 0.0
        return len(pauses), sum(pauses) / len(pauses)

    def _indicators(self, wps: float, repeated: int, pause_count: int, avg_pause_ms: float) -> list[str]:
        c = self.config
        indicators = []
        if wps > c.fast_speech_wps:
            indicators.append(f"Rapid speech ({wps:.1f} wps)")
        if wps < c.slow_speech_wps and pause_count >= c.hesitant_pause_count:
            indicators.append(f"Hesitant speech with {pause_count} pauses")
        if repeated >= c.repetition_indicator_count:
            indicators.append(f"{repeated} word repetitions detected")
        if avg_pause_ms > c.long_pause_ms and pause_count >= c.long_pause_count:
            indicators.append(f"Long pauses (avg {avg_pause_ms / 1000:.1f}s)")
        return indicators

    def _confidence(self, wps: float, repeated: int, pause_count: int, indicator_count: int) -> int:
        c = self.config
        score = 0.0
        if wps > c.fast_speech_wps:
            score += min(c.fast_cap, (wps - c.fast_speech_wps) * c.fast_points_per_wps)
        if repeated >= c.repetition_indicator_count:
            score += min(c.repeat_cap, repeated * c.repeat_points)
        if pause_count >= c.hesitant_pause_count:
            score += min(c.pause_cap, pause_count * c.pause_points)
        if indicator_count >= c.bonus_min_indicators:
            score += min(c.bonus_cap, indicator_count * c.bonus_points)
        # Round half up, then clamp
        return int(max(0, min(100, math.floor(score + 0.5))))
