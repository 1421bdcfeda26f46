"""Tests for cluster detection: category, unresolved, time window, degree box, min matches."""

import pytest

from clustering.correlator import CorrelationConfig, find_cluster
from core.models import Category


class TestFindCluster:
    def test_two_priors_is_not_a_cluster(self, store, make_report, now):
        make_report(minutes_ago=10)
        make_report(minutes_ago=5)
        new = make_report()
        assert find_cluster(new, store, now=now) == []

    def test_three_priors_is_a_cluster(self, store, make_report, now):
        a = make_report(minutes_ago=15)
        b = make_report(minutes_ago=10, lat=51.5080, lng=-0.1270)
        c = make_report(minutes_ago=5)
        new = make_report()
        cluster = find_cluster(new, store, now=now)
        assert [r.id for r in cluster] == [c.id, b.id, a.id]

    def test_only_most_recent_priors_returned(self, store, make_report, now):
        priors = [make_report(minutes_ago=m) for m in (25, 20, 15, 10, 5)]
        new = make_report()
        cluster = find_cluster(new, store, now=now)
        assert [r.id for r in cluster] == [p.id for p in reversed(priors[2:])]

    def test_outside_degree_box_excluded(self, store, make_report, now):
        make_report(minutes_ago=15)
        make_report(minutes_ago=10)
        make_report(minutes_ago=5, lat=51.5074 + 0.003)
        new = make_report()
        assert find_cluster(new, store, now=now) == []

    def test_outside_time_window_excluded(self, store, make_report, now):
        make_report(minutes_ago=31)
        make_report(minutes_ago=10)
        make_report(minutes_ago=5)
        new = make_report()
        assert find_cluster(new, store, now=now) == []

    def test_window_edge_included(self, store, make_report, now):
        make_report(minutes_ago=30)
        make_report(minutes_ago=10)
        make_report(minutes_ago=5)
        new = make_report()
        assert len(find_cluster(new, store, now=now)) == 3

    def test_other_category_excluded(self, store, make_report, now):
        make_report(minutes_ago=15, category=Category.MEDICAL)
        make_report(minutes_ago=10)
        make_report(minutes_ago=5)
        new = make_report()
        assert find_cluster(new, store, now=now) == []

    def test_resolved_priors_excluded(self, store, make_report, now):
        a = make_report(minutes_ago=15)
        make_report(minutes_ago=10)
        make_report(minutes_ago=5)
        store.update_many([a.id])
        new = make_report()
        assert find_cluster(new, store, now=now) == []

    def test_custom_config(self, store, make_report, now):
        make_report(minutes_ago=5)
        new = make_report()
        config = CorrelationConfig(min_matches=1)
        assert len(find_cluster(new, store, config, now=now)) == 1


class TestCorrelationConfigFromEnv:
    def test_defaults(self, monkeypatch):
        for name in ("CORRELATION_WINDOW_MINUTES", "CORRELATION_DEGREE_TOLERANCE", "CORRELATION_MIN_MATCHES"):
            monkeypatch.delenv(name, raising=False)
        c = CorrelationConfig.from_env()
        assert c.window_minutes == 30
        assert c.degree_tolerance == pytest.approx(0.002)
        assert c.min_matches == 3

    def test_overrides_clamped(self, monkeypatch):
        monkeypatch.setenv("CORRELATION_WINDOW_MINUTES", "60")
        monkeypatch.setenv("CORRELATION_MIN_MATCHES", "0")
        monkeypatch.setenv("CORRELATION_DEGREE_TOLERANCE", "bogus")
        c = CorrelationConfig.from_env()
        assert c.window_minutes == 60
        assert c.min_matches == 1
        assert c.degree_tolerance == pytest.approx(0.002)
