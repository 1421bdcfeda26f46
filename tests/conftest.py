"""Pytest fixtures for distress API tests."""

from datetime import datetime, timedelta, timezone

import pytest

from core.models import Category, Severity, Source
from core.store import InMemoryReportStore

LONDON = (51.5074, -0.1278)


class FakeClock:
    """Millisecond clock for the analyzer; tests move time with advance()."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingNotifier:
    name = "recording"

    def __init__(self, result: bool = True):
        self.calls = []
        self.result = result

    def notify(self, summary, cluster):
        self.calls.append((summary, [r.id for r in cluster]))
        return self.result


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def now():
    """Fixed 'now' for correlation queries."""
    return datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return InMemoryReportStore()


@pytest.fixture
def make_report(store, now):
    """Create a report in the store `minutes_ago` before `now`."""

    def _make(
        category=Category.FIRE,
        lat=LONDON[0],
        lng=LONDON[1],
        minutes_ago: float = 0,
        description="Smoke coming from the building",
        keyword="fire",
    ):
        return store.create(
            keyword=keyword,
            description=description,
            latitude=lat,
            longitude=lng,
            category=category,
            severity=Severity.MEDIUM,
            source=Source.MANUAL,
            created_at=now - timedelta(minutes=minutes_ago),
        )

    return _make


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app_client(monkeypatch, clock, notifier):
    """
    FastAPI TestClient. Clears in-memory reports, gives sessions the fake clock and
    replaces the summary/notification collaborators with local fakes.
    """
    from fastapi.testclient import TestClient
    import api.main as main_module
    from speech.analyzer import StressConfig
    from speech.sessions import SessionRegistry

    main_module.store.clear()
    monkeypatch.setattr(main_module, "sessions", SessionRegistry(StressConfig(), clock=clock))
    monkeypatch.setattr(main_module.coordinator, "summarize", lambda descriptions: f"{len(descriptions)} reports of the same incident")
    monkeypatch.setattr(main_module.coordinator, "notifier", notifier)
    monkeypatch.setattr(main_module.coordinator, "on_escalation", None)
    client = TestClient(main_module.app)
    client.notifier = notifier
    client.clock = clock
    return client
