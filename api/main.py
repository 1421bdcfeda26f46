"""
FastAPI backend: stream transcript fragments into per-session stress analyzers, create
keyword and early-warning reports, and escalate corroborated clusters once.
Report creation never fails because of summary/notification problems.
"""

import logging
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

load_dotenv(override=True)

from analytics.report_stats import report_analytics  # noqa: E402
from analytics.snowflake_sink import sink_escalation, sink_report_created  # noqa: E402
from clustering.correlator import CorrelationConfig  # noqa: E402
from clustering.escalation import EscalationConfig, EscalationCoordinator, EscalationResult  # noqa: E402
from core.models import Category, Report, Severity, Source, SpeechMetrics  # noqa: E402
from core.store import InMemoryReportStore  # noqa: E402
from extractors.keyword_extractor import build_keyword_report, detect_keywords  # noqa: E402
from notify.summarizer import summarize_reports, summarizer_configured  # noqa: E402
from notify.webhook import get_notifier  # noqa: E402
from speech.analyzer import StressConfig  # noqa: E402
from speech.early_warning import build_early_warning_report  # noqa: E402
from speech.sessions import SessionNotFoundError, SessionRegistry  # noqa: E402

# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("distress_api")

# -----------------------------------------------------------------------------
# State (in-memory; one process)
# -----------------------------------------------------------------------------
store = InMemoryReportStore()
sessions = SessionRegistry(StressConfig.from_env())
escalation_config = EscalationConfig.from_env()


def _summarize(descriptions: list[str]) -> str:
    return summarize_reports(descriptions, timeout_s=escalation_config.summary_timeout_s)


def _sink_escalation(report: Report, result: EscalationResult) -> None:
    sink_escalation(report.to_dict(), result.to_dict())


coordinator = EscalationCoordinator(
    store,
    summarize=_summarize,
    notifier=get_notifier(),
    correlation=CorrelationConfig.from_env(),
    config=escalation_config,
    on_escalation=_sink_escalation,
)

app = FastAPI(title="Distress Early Warning API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

NO_CACHE_HEADERS = {"Cache-Control": "no-store, no-cache, must-revalidate", "Pragma": "no-cache"}


# -----------------------------------------------------------------------------
# Request models
# -----------------------------------------------------------------------------
class SessionCreateRequest(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class SpeechEventRequest(BaseModel):
    text: str = ""
    is_final: bool = False
    latitude: Optional[float] = None  # updates the session's location when both are set
    longitude: Optional[float] = None


class SpeechStressData(BaseModel):
    words_per_second: float = 0.0
    repeated_words: int = 0
    pause_count: int = 0
    average_pause_duration_ms: float = 0.0
    confidence: int = 0
    stress_indicators: list[str] = Field(default_factory=list)


class ReportRequest(BaseModel):
    keyword: Optional[str] = None
    description: Optional[str] = None
    category: Category = Category.OTHER
    severity: Severity = Severity.LOW
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    source: Source = Source.VOICE
    speech_stress_data: Optional[SpeechStressData] = None


class EarlyWarningRequest(BaseModel):
    confidence: Optional[int] = None
    stress_indicators: list[str] = Field(default_factory=list)
    words_per_second: float = 0.0
    repeated_words: int = 0
    pause_count: int = 0
    average_pause_duration_ms: float = 0.0
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    description: Optional[str] = None


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _bad_request(detail: str) -> JSONResponse:
    logger.warning("request rejected: %s", detail)
    return JSONResponse(status_code=400, content={"detail": detail}, headers=NO_CACHE_HEADERS)


def _create_and_correlate(fields: dict) -> tuple[dict, dict]:
    """Persist a report, then run correlation/escalation. Returns (report dict, escalation dict)."""
    report = store.create(**fields)
    sink_report_created(report.to_dict())
    result = coordinator.process(report)
    current = store.get(report.id) or report
    return current.to_dict(), result.to_dict()


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------
@app.post("/sessions")
def create_session(body: Optional[SessionCreateRequest] = None):
    body = body or SessionCreateRequest()
    session = sessions.create(latitude=body.latitude, longitude=body.longitude)
    return JSONResponse(content={"session_id": session.session_id}, headers=NO_CACHE_HEADERS)


@app.post("/sessions/{session_id}/events")
def post_session_event(session_id: str, body: SpeechEventRequest):
    """Analyze one recognizer fragment; may create an early-warning report and keyword reports."""
    try:
        session = sessions.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")

    with session.lock:
        if body.latitude is not None and body.longitude is not None:
            session.latitude = body.latitude
            session.longitude = body.longitude
        metrics = session.analyzer.analyze_event(body.text, body.is_final)
        has_location = session.has_location
        lat, lng = session.latitude, session.longitude
        should_warn = session.analyzer.should_trigger_early_warning(metrics)
        fire_warning = has_location and session.trigger.check(metrics)
        keyword_matches = []
        if body.is_final and has_location:
            keyword_matches = [m for m in detect_keywords(body.text) if m.keyword not in session.sent_keywords]
            session.sent_keywords.update(m.keyword for m in keyword_matches)

    preview = body.text[:80] + ("…" if len(body.text) > 80 else "")
    logger.info(
        "event session_id=%s final=%s confidence=%d preview=%r",
        session_id, body.is_final, metrics.confidence, preview,
    )

    content = {"session_id": session_id, "metrics": metrics.to_dict(), "early_warning": False, "keyword_reports": []}
    if fire_warning:
        report, escalation = _create_and_correlate(build_early_warning_report(metrics, lat, lng))
        content["early_warning"] = True
        content["early_warning_report"] = report
        content["early_warning_escalation"] = escalation
    elif should_warn and not has_location:
        content["early_warning_skipped"] = "missing location"

    for match in keyword_matches:
        report, escalation = _create_and_correlate(
            build_keyword_report(match, lat, lng, metrics=metrics, transcript=body.text)
        )
        content["keyword_reports"].append({"report": report, "escalation": escalation})
    return JSONResponse(content=content, headers=NO_CACHE_HEADERS)


@app.post("/sessions/{session_id}/reset")
def reset_session(session_id: str):
    try:
        sessions.reset(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return JSONResponse(content={"session_id": session_id, "reset": True}, headers=NO_CACHE_HEADERS)


@app.delete("/sessions/{session_id}")
def delete_session(session_id: str):
    try:
        sessions.close(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return JSONResponse(content={"session_id": session_id, "closed": True}, headers=NO_CACHE_HEADERS)


@app.post("/report")
def create_report(body: ReportRequest):
    """Create a keyword/manual report; correlated reports are escalated once and resolved."""
    if not body.keyword or not body.description or body.latitude is None or body.longitude is None:
        return _bad_request("Missing required fields")
    metrics = SpeechMetrics(**body.speech_stress_data.model_dump()) if body.speech_stress_data else None
    report, escalation = _create_and_correlate({
        "keyword": body.keyword,
        "description": body.description,
        "category": body.category,
        "severity": body.severity,
        "latitude": body.latitude,
        "longitude": body.longitude,
        "source": body.source,
        "speech_metrics": metrics,
    })
    return JSONResponse(
        status_code=201,
        content={"success": True, "report": report, "escalation": escalation},
        headers=NO_CACHE_HEADERS,
    )


@app.post("/early-warning")
def create_early_warning(body: EarlyWarningRequest):
    """Early-warning report from client-side stress metrics (no keyword spoken yet)."""
    if body.latitude is None or body.longitude is None or body.confidence is None:
        return _bad_request("Missing required fields: latitude, longitude, confidence")
    metrics = SpeechMetrics(
        words_per_second=body.words_per_second,
        repeated_words=body.repeated_words,
        pause_count=body.pause_count,
        average_pause_duration_ms=body.average_pause_duration_ms,
        confidence=body.confidence,
        stress_indicators=list(body.stress_indicators),
    )
    report, escalation = _create_and_correlate(
        build_early_warning_report(metrics, body.latitude, body.longitude, description=body.description)
    )
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "report": report,
            "escalation": escalation,
            "message": "Early warning alert created",
            "confidence": body.confidence,
        },
        headers=NO_CACHE_HEADERS,
    )


@app.get("/reports")
def list_reports(unresolved: bool = False):
    """Reports newest first; unresolved=true hides reports already folded into an escalation."""
    reports = [r.to_dict() for r in store.list_reports(unresolved_only=unresolved)]
    return JSONResponse(content={"count": len(reports), "reports": reports}, headers=NO_CACHE_HEADERS)


@app.get("/analytics")
def get_analytics():
    """Counts per category and hour, plus speech-stress stats over every stored report."""
    return JSONResponse(content=report_analytics(store.list_reports()), headers=NO_CACHE_HEADERS)


@app.get("/health")
def health():
    notifier = coordinator.notifier
    return JSONResponse(
        content={
            "status": "ok",
            "summarizer": summarizer_configured(),
            "notifier": getattr(notifier, "name", None) if notifier is not None else None,
        },
        headers=NO_CACHE_HEADERS,
    )
