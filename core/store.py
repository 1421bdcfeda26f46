"""In-memory report store. Query shape mirrors what the correlation engine needs:
category equality, resolved flag, created_at lower bound, two coordinate ranges."""

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from core.models import Category, Report, Severity, Source, SpeechMetrics, utcnow

logger = logging.getLogger("distress_api.core.store")


@dataclass(frozen=True)
class ReportQuery:
    category: Optional[Category] = None
    is_resolved: Optional[bool] = None
    created_after: Optional[datetime] = None  # inclusive
    latitude_range: Optional[tuple[float, float]] = None  # inclusive (low, high)
    longitude_range: Optional[tuple[float, float]] = None
    exclude_id: Optional[str] = None
    newest_first: bool = True
    limit: Optional[int] = None

    def matches(self, report: Report) -> bool:
        if self.exclude_id is not None and report.id == self.exclude_id:
            return False
        if self.category is not None and report.category != self.category:
            return False
        if self.is_resolved is not None and report.is_resolved != self.is_resolved:
            return False
        if self.created_after is not None and report.created_at < self.created_after:
            return False
        if self.latitude_range is not None:
            lo, hi = self.latitude_range
            if not lo <= report.latitude <= hi:
                return False
        if self.longitude_range is not None:
            lo, hi = self.longitude_range
            if not lo <= report.longitude <= hi:
                return False
        return True


def new_report_id() -> str:
    """Generate a new report id (e.g. report-<uuid4>)."""
    return "report-" + uuid.uuid4().hex[:12]


class InMemoryReportStore:
    """Thread-safe report storage. Returned reports are copies; mutate only through update_many."""

    def __init__(self) -> None:
        self._reports: dict[str, Report] = {}
        self._lock = threading.Lock()

    def create(
        self,
        *,
        keyword: str,
        description: str,
        latitude: float,
        longitude: float,
        category: Category = Category.OTHER,
        severity: Severity = Severity.LOW,
        source: Source = Source.VOICE,
        speech_metrics: Optional[SpeechMetrics] = None,
        created_at: Optional[datetime] = None,
    ) -> Report:
        report = Report(
            id=new_report_id(),
            keyword=keyword,
            description=description,
            latitude=float(latitude),
            longitude=float(longitude),
            category=Category(category),
            severity=Severity(severity),
            source=Source(source),
            created_at=created_at or utcnow(),
            speech_metrics=speech_metrics,
        )
        with self._lock:
            self._reports[report.id] = report
        logger.info("report created id=%s category=%s source=%s", report.id, report.category.value, report.source.value)
        return replace(report)

    def get(self, report_id: str) -> Optional[Report]:
        with self._lock:
            report = self._reports.get(report_id)
            return replace(report) if report is not None else None

    def find_many(self, query: ReportQuery) -> list[Report]:
        with self._lock:
            found = [replace(r) for r in self._reports.values() if query.matches(r)]
        found.sort(key=lambda r: r.created_at, reverse=query.newest_first)
        if query.limit is not None:
            found = found[: query.limit]
        return found

    def update_many(self, report_ids, *, is_resolved: bool = True, only_unresolved: bool = False) -> int:
        """
        Set is_resolved on every id in one step. All-or-nothing: if any id is unknown, or
        (with only_unresolved) already resolved, nothing is changed and 0 is returned.
        """
        ids = set(report_ids)
        if not ids:
            return 0
        with self._lock:
            targets = [self._reports.get(i) for i in ids]
            if any(r is None for r in targets):
                logger.warning("update_many skipped: unknown ids in %s", sorted(ids))
                return 0
            if only_unresolved and any(r.is_resolved for r in targets):
                logger.info("update_many skipped: cluster already resolved ids=%s", sorted(ids))
                return 0
            for r in targets:
                r.is_resolved = is_resolved
        return len(ids)

    def list_reports(self, unresolved_only: bool = False) -> list[Report]:
        return self.find_many(ReportQuery(is_resolved=False if unresolved_only else None))

    def clear(self) -> None:
        with self._lock:
            self._reports.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._reports)
