"""
Escalate a confirmed cluster once: summary -> single notification -> resolve every member.

At most one notification per cluster: correlation and escalation run under the locks
of the report's category and surrounding geocells, and before anything is sent the
members are re-checked (any member already resolved means another report escalated
this cluster first). The resolve step is a single all-or-nothing store update.

Summary and notification are best effort with bounded timeouts; their failure only
means the cluster is resolved without notifying. Nothing here raises to the caller.

Tunable via env (EscalationConfig.from_env):
- SUMMARY_TIMEOUT_S (default 20), NOTIFY_TIMEOUT_S (default 15).
"""

import logging
import math
import os
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from clustering.correlator import CorrelationConfig, find_cluster
from clustering.geo_proximity import DEFAULT_DEGREE_TOLERANCE, cluster_spread_m
from core.models import Category, Report

logger = logging.getLogger("distress_api.clustering.escalation")

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="escalation")


def run_with_timeout(fn: Callable, timeout_s: float, *args, **kwargs):
    """Run fn in the collaborator pool; raises concurrent.futures.TimeoutError after timeout_s.
    A timed-out call is abandoned, not cancelled."""
    future = _executor.submit(fn, *args, **kwargs)
    return future.result(timeout=timeout_s)


def _env_timeout(name: str, default: float) -> float:
    v = os.environ.get(name)
    if v is None or v.strip() == "":
        return default
    try:
        return max(0.1, float(v.strip()))
    except ValueError:
        return default


@dataclass(frozen=True)
class EscalationConfig:
    summary_timeout_s: float = 20.0
    notify_timeout_s: float = 15.0

    @classmethod
    def from_env(cls) -> "EscalationConfig":
        return cls(
            summary_timeout_s=_env_timeout("SUMMARY_TIMEOUT_S", 20.0),
            notify_timeout_s=_env_timeout("NOTIFY_TIMEOUT_S", 15.0),
        )


class ClusterLocks:
    """
    Locks keyed by (category, geocell), with cells as wide as the correlation tolerance.
    A report holds its own cell and the eight around it, so two reports that could share
    a cluster member (at most two tolerances apart) always share a lock, while reports
    elsewhere proceed in parallel. Locks are taken in sorted order.
    """

    def __init__(self, cell_size: float = DEFAULT_DEGREE_TOLERANCE) -> None:
        self.cell_size = cell_size
        self._locks: dict[tuple[str, int, int], threading.Lock] = {}
        self._guard = threading.Lock()

    def keys_for(self, category: Category, latitude: float, longitude: float) -> list[tuple[str, int, int]]:
        cat = Category(category).value
        row = math.floor(latitude / self.cell_size)
        col = math.floor(longitude / self.cell_size)
        return sorted((cat, row + dr, col + dc) for dr in (-1, 0, 1) for dc in (-1, 0, 1))

    def _lock_for(self, key: tuple[str, int, int]) -> threading.Lock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    @contextmanager
    def hold(self, category: Category, latitude: float, longitude: float):
        with ExitStack() as stack:
            for key in self.keys_for(category, latitude, longitude):
                stack.enter_context(self._lock_for(key))
            yield


@dataclass
class EscalationResult:
    escalated: bool = False
    reason: str = ""
    cluster_ids: list = field(default_factory=list)
    summary: Optional[str] = None
    notified: bool = False
    resolved_count: int = 0

    def to_dict(self):
        return {
            "escalated": self.escalated,
            "reason": self.reason,
            "cluster_ids": list(self.cluster_ids),
            "summary": self.summary,
            "notified": self.notified,
            "resolved_count": self.resolved_count,
        }


class EscalationCoordinator:
    """
    summarize: (list of descriptions) -> text; may raise.
    notifier: object with notify(summary, cluster) -> bool, or None when no channel is configured.
    on_escalation: optional callback(report, result) for analytics; its errors are logged.
    """

    def __init__(
        self,
        store,
        summarize: Callable[[list[str]], str],
        notifier=None,
        correlation: Optional[CorrelationConfig] = None,
        config: Optional[EscalationConfig] = None,
        locks: Optional[ClusterLocks] = None,
        on_escalation: Optional[Callable[[Report, EscalationResult], None]] = None,
    ):
        self.store = store
        self.summarize = summarize
        self.notifier = notifier
        self.correlation = correlation or CorrelationConfig()
        self.config = config or EscalationConfig()
        self.locks = locks or ClusterLocks(self.correlation.degree_tolerance)
        self.on_escalation = on_escalation

    def process(self, new_report: Report, now: Optional[datetime] = None) -> EscalationResult:
        """Correlate a freshly created report and escalate its cluster if one exists."""
        try:
            with self.locks.hold(new_report.category, new_report.latitude, new_report.longitude):
                matches = find_cluster(new_report, self.store, self.correlation, now)
                if not matches:
                    result = EscalationResult(reason="no cluster")
                else:
                    result = self._escalate(new_report, matches)
        except Exception as e:
            logger.exception("escalation failed report_id=%s: %s", new_report.id, e)
            result = EscalationResult(reason="error")
        if result.cluster_ids and self.on_escalation is not None:
            try:
                self.on_escalation(new_report, result)
            except Exception as e:
                logger.warning("escalation hook failed report_id=%s: %s", new_report.id, e)
        return result

    def _escalate(self, new_report: Report, matches: list[Report]) -> EscalationResult:
        cluster = [new_report, *matches]
        ids = [r.id for r in cluster]

        current = [self.store.get(i) for i in ids]
        if any(r is None or r.is_resolved for r in current):
            logger.info("cluster already handled, skipping ids=%s", ids)
            return EscalationResult(reason="already resolved", cluster_ids=ids)

        logger.info(
            "cluster escalating category=%s size=%d spread_m=%.1f",
            new_report.category.value, len(cluster),
            cluster_spread_m([(r.latitude, r.longitude) for r in cluster]),
        )
        summary = self._summarize(cluster)
        notified = False
        if summary:
            notified = self._notify(summary, cluster)
        else:
            logger.warning("summary unavailable; notification skipped ids=%s", ids)

        resolved = self.store.update_many(ids, is_resolved=True, only_unresolved=True)
        if resolved == 0:
            logger.warning("cluster resolve was a no-op ids=%s", ids)
        else:
            logger.info("marked %d reports as resolved", resolved)
        return EscalationResult(
            escalated=resolved > 0,
            reason="escalated" if resolved > 0 else "resolve failed",
            cluster_ids=ids,
            summary=summary,
            notified=notified,
            resolved_count=resolved,
        )

    def _summarize(self, cluster: list[Report]) -> Optional[str]:
        descriptions = [r.description for r in cluster]
        try:
            text = run_with_timeout(self.summarize, self.config.summary_timeout_s, descriptions)
        except FuturesTimeout:
            logger.warning("summary timed out after %.1fs", self.config.summary_timeout_s)
            return None
        except Exception as e:
            logger.warning("summary failed: %s", e)
            return None
        text = (text or "").strip()
        return text or None

    def _notify(self, summary: str, cluster: list[Report]) -> bool:
        if self.notifier is None:
            logger.info("no notification channel configured; skipping notify")
            return False
        try:
            return bool(run_with_timeout(self.notifier.notify, self.config.notify_timeout_s, summary, cluster))
        except FuturesTimeout:
            logger.warning("notification timed out after %.1fs", self.config.notify_timeout_s)
            return False
        except Exception as e:
            logger.warning("notification failed: %s", e)
            return False
