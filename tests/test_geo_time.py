"""Tests for degree-box and time-window proximity."""

from datetime import datetime, timedelta, timezone

import pytest

from clustering.geo_proximity import cluster_spread_m, degree_box, haversine_m, within_degree_box
from clustering.time_proximity import correlation_cutoff, within_window


class TestGeoProximity:
    def test_haversine_same_point(self):
        assert haversine_m(51.507, -0.127, 51.507, -0.127) < 1

    def test_haversine_one_degree_latitude(self):
        assert haversine_m(0, 0, 1, 0) == pytest.approx(111_195, rel=1e-3)

    def test_degree_box(self):
        (lat_lo, lat_hi), (lng_lo, lng_hi) = degree_box(51.5, -0.12, 0.002)
        assert lat_lo == pytest.approx(51.498)
        assert lat_hi == pytest.approx(51.502)
        assert lng_lo == pytest.approx(-0.122)
        assert lng_hi == pytest.approx(-0.118)

    def test_within_box(self):
        assert within_degree_box(51.5, -0.12, 51.5019, -0.1219)
        assert not within_degree_box(51.5, -0.12, 51.503, -0.12)
        assert not within_degree_box(51.5, -0.12, 51.5, -0.117)

    def test_cluster_spread(self):
        assert cluster_spread_m([]) == 0.0
        assert cluster_spread_m([(51.5, -0.12)]) == 0.0
        assert 0 < cluster_spread_m([(51.5, -0.12), (51.5003, -0.12), (51.5001, -0.12)]) < 50


class TestTimeProximity:
    def test_cutoff(self):
        now = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
        assert correlation_cutoff(now, 30) == datetime(2025, 1, 15, 11, 30, tzinfo=timezone.utc)

    def test_naive_now_treated_as_utc(self):
        assert correlation_cutoff(datetime(2025, 1, 15, 12, 0), 30) == datetime(2025, 1, 15, 11, 30, tzinfo=timezone.utc)

    def test_within_window_inclusive(self):
        now = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
        assert within_window(now - timedelta(minutes=30), now)
        assert within_window(now - timedelta(minutes=5), now)
        assert not within_window(now - timedelta(minutes=31), now)
