"""Time proximity: the trailing correlation window reports must fall inside."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger("distress_api.clustering.time_proximity")

DEFAULT_WINDOW_MINUTES = 30


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def correlation_cutoff(now: Optional[datetime] = None, window_minutes: float = DEFAULT_WINDOW_MINUTES) -> datetime:
    """Earliest created_at still inside the window (inclusive)."""
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    return now - timedelta(minutes=window_minutes)


def within_window(
    created_at: datetime,
    now: Optional[datetime] = None,
    window_minutes: float = DEFAULT_WINDOW_MINUTES,
) -> bool:
    return _as_utc(created_at) >= correlation_cutoff(now, window_minutes)
