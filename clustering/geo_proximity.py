"""Geo proximity: fixed degree-box tolerance for correlation, haversine for reporting distance."""

import logging
import math

logger = logging.getLogger("distress_api.clustering.geo_proximity")

# Earth radius in metres (approximate)
EARTH_RADIUS_M = 6_371_000

# ~220 m of latitude; longitude span shrinks with cos(latitude). Not geodesically corrected.
DEFAULT_DEGREE_TOLERANCE = 0.002


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in metres between two (lat, lng) points."""
    a = math.radians(lat2 - lat1)
    b = math.radians(lng2 - lng1)
    x = math.sin(a / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(b / 2) ** 2
    c = 2 * math.atan2(math.sqrt(x), math.sqrt(1 - x))
    return EARTH_RADIUS_M * c


def degree_box(lat: float, lng: float, tolerance: float = DEFAULT_DEGREE_TOLERANCE) -> tuple[tuple[float, float], tuple[float, float]]:
    """Inclusive ((lat_lo, lat_hi), (lng_lo, lng_hi)) around a point."""
    return (lat - tolerance, lat + tolerance), (lng - tolerance, lng + tolerance)


def within_degree_box(
    lat: float,
    lng: float,
    other_lat: float,
    other_lng: float,
    tolerance: float = DEFAULT_DEGREE_TOLERANCE,
) -> bool:
    (lat_lo, lat_hi), (lng_lo, lng_hi) = degree_box(lat, lng, tolerance)
    return lat_lo <= other_lat <= lat_hi and lng_lo <= other_lng <= lng_hi


def cluster_spread_m(points: list[tuple[float, float]]) -> float:
    """Largest pairwise distance in metres (0 for fewer than two points). Logged with escalations."""
    spread = 0.0
    for i, (lat1, lng1) in enumerate(points):
        for lat2, lng2 in points[i + 1:]:
            spread = max(spread, haversine_m(lat1, lng1, lat2, lng2))
    return spread
