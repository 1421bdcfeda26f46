"""
Analyzer sessions: one per active voice capture, each with its own lock (single writer).

Sessions idle longer than SESSION_IDLE_TIMEOUT_S (default 1800) are dropped the next time
the registry is touched, so abandoned captures do not accumulate.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from core.models import utcnow
from speech.analyzer import SpeechStressAnalyzer, StressConfig, _env_float, _monotonic_ms
from speech.early_warning import EarlyWarningTrigger

logger = logging.getLogger("distress_api.speech.sessions")

DEFAULT_IDLE_TIMEOUT_S = 1800


class SessionNotFoundError(KeyError):
    """Raised when the requested session id is unknown (or expired)."""


@dataclass
class AnalyzerSession:
    session_id: str
    analyzer: SpeechStressAnalyzer
    trigger: EarlyWarningTrigger
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    sent_keywords: set = field(default_factory=set)  # keyword reports already created this session
    created_at: datetime = field(default_factory=utcnow)
    last_active_ms: float = 0.0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def new_session_id() -> str:
    return "session-" + uuid.uuid4().hex[:16]


class SessionRegistry:
    """Process-local session table. Reset discards the analyzer and builds a fresh one."""

    def __init__(
        self,
        config: Optional[StressConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        idle_timeout_s: Optional[float] = None,
    ):
        self.config = config or StressConfig()
        self._clock = clock
        if idle_timeout_s is None:
            idle_timeout_s = max(1.0, _env_float("SESSION_IDLE_TIMEOUT_S", DEFAULT_IDLE_TIMEOUT_S))
        self.idle_timeout_ms = idle_timeout_s * 1000.0
        self._sessions: dict[str, AnalyzerSession] = {}
        self._lock = threading.Lock()

    def _now_ms(self) -> float:
        return self._clock() if self._clock is not None else _monotonic_ms()

    def _new_analyzer(self) -> SpeechStressAnalyzer:
        if self._clock is not None:
            return SpeechStressAnalyzer(self.config, clock=self._clock)
        return SpeechStressAnalyzer(self.config)

    def expire_idle(self) -> int:
        """Drop sessions with no activity for longer than the idle timeout. Returns how many."""
        now = self._now_ms()
        with self._lock:
            stale = [sid for sid, s in self._sessions.items() if now - s.last_active_ms > self.idle_timeout_ms]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            logger.info("expired idle sessions count=%d", len(stale))
        return len(stale)

    def create(self, latitude: Optional[float] = None, longitude: Optional[float] = None) -> AnalyzerSession:
        self.expire_idle()
        session = AnalyzerSession(
            session_id=new_session_id(),
            analyzer=self._new_analyzer(),
            trigger=EarlyWarningTrigger(self.config.early_warning_threshold),
            latitude=latitude,
            longitude=longitude,
            last_active_ms=self._now_ms(),
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info("session created session_id=%s has_location=%s", session.session_id, session.has_location)
        return session

    def get(self, session_id: str) -> AnalyzerSession:
        """Look up a session and mark it active."""
        self.expire_idle()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                session.last_active_ms = self._now_ms()
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def reset(self, session_id: str) -> AnalyzerSession:
        session = self.get(session_id)
        with session.lock:
            session.analyzer = self._new_analyzer()
            session.trigger = EarlyWarningTrigger(self.config.early_warning_threshold)
            session.sent_keywords = set()
        logger.info("session reset session_id=%s", session_id)
        return session

    def close(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise SessionNotFoundError(session_id)
        logger.info("session closed session_id=%s", session_id)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
