"""Clustering: category + time window + degree box -> cluster; one-shot escalation of a cluster."""

from clustering.geo_proximity import haversine_m, within_degree_box, degree_box
from clustering.time_proximity import correlation_cutoff, within_window
from clustering.correlator import CorrelationConfig, find_cluster
from clustering.escalation import (
    ClusterLocks,
    EscalationConfig,
    EscalationCoordinator,
    EscalationResult,
    run_with_timeout,
)

__all__ = [
    "haversine_m",
    "within_degree_box",
    "degree_box",
    "correlation_cutoff",
    "within_window",
    "CorrelationConfig",
    "find_cluster",
    "ClusterLocks",
    "EscalationConfig",
    "EscalationCoordinator",
    "EscalationResult",
    "run_with_timeout",
]
