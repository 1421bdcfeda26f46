"""
Decide whether a new report corroborates recent unresolved reports of the same category.

Precision over recall: a cluster needs the new report plus CORRELATION_MIN_MATCHES priors.

Tunable via env (CorrelationConfig.from_env):
- CORRELATION_WINDOW_MINUTES: how far back priors may be (default 30).
- CORRELATION_DEGREE_TOLERANCE: +/- degrees on latitude and longitude (default 0.002, ~220 m).
- CORRELATION_MIN_MATCHES: priors required to form a cluster (default 3).
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from clustering.geo_proximity import DEFAULT_DEGREE_TOLERANCE, degree_box
from clustering.time_proximity import DEFAULT_WINDOW_MINUTES, correlation_cutoff
from core.models import Report
from core.store import ReportQuery

logger = logging.getLogger("distress_api.clustering.correlator")


def _env_number(name: str, default: float, lo: float, hi: float) -> float:
    v = os.environ.get(name)
    if v is None or v.strip() == "":
        return default
    try:
        return max(lo, min(hi, float(v.strip())))
    except ValueError:
        return default


@dataclass(frozen=True)
class CorrelationConfig:
    window_minutes: float = DEFAULT_WINDOW_MINUTES
    degree_tolerance: float = DEFAULT_DEGREE_TOLERANCE
    min_matches: int = 3

    @classmethod
    def from_env(cls) -> "CorrelationConfig":
        return cls(
            window_minutes=_env_number("CORRELATION_WINDOW_MINUTES", DEFAULT_WINDOW_MINUTES, 1, 24 * 60),
            degree_tolerance=_env_number("CORRELATION_DEGREE_TOLERANCE", DEFAULT_DEGREE_TOLERANCE, 0.0001, 1.0),
            min_matches=int(_env_number("CORRELATION_MIN_MATCHES", 3, 1, 100)),
        )


def cluster_query(report: Report, config: CorrelationConfig, now: Optional[datetime] = None) -> ReportQuery:
    lat_range, lng_range = degree_box(report.latitude, report.longitude, config.degree_tolerance)
    return ReportQuery(
        category=report.category,
        is_resolved=False,
        created_after=correlation_cutoff(now, config.window_minutes),
        latitude_range=lat_range,
        longitude_range=lng_range,
        exclude_id=report.id,
        newest_first=True,
        limit=config.min_matches,
    )


def find_cluster(
    new_report: Report,
    store,
    config: Optional[CorrelationConfig] = None,
    now: Optional[datetime] = None,
) -> list[Report]:
    """
    Return the most recent matching priors (newest first) when there are at least
    min_matches of them; otherwise [] meaning "no cluster, do not escalate".
    store: anything with find_many(ReportQuery) -> list[Report].
    """
    config = config or CorrelationConfig()
    matches = store.find_many(cluster_query(new_report, config, now))
    if len(matches) < config.min_matches:
        logger.debug("no cluster report_id=%s category=%s matches=%d", new_report.id, new_report.category.value, len(matches))
        return []
    logger.info(
        "cluster found report_id=%s category=%s priors=%s",
        new_report.id, new_report.category.value, [r.id for r in matches],
    )
    return matches
