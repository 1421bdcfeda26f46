"""
Optional Snowflake analytics sink.

When SNOWFLAKE_ACCOUNT, SNOWFLAKE_USER, SNOWFLAKE_PASSWORD (plus optional SNOWFLAKE_WAREHOUSE,
SNOWFLAKE_DATABASE, SNOWFLAKE_SCHEMA, SNOWFLAKE_ROLE) are set, report creation and
escalation decisions are written to Snowflake:

- report_events: one row per created report (category, severity, source, coords, stress confidence)
- escalation_events: one row per cluster decision (trigger report, cluster ids, notified, resolved count)

No-op if Snowflake env is not set. Errors are logged and swallowed so ingestion never fails.
"""

import json
import logging
import os

logger = logging.getLogger("distress_api.analytics.snowflake")

try:
    import snowflake.connector
except ImportError:
    snowflake = None  # type: ignore


def _snowflake_configured() -> bool:
    if snowflake is None:
        return False
    account = os.environ.get("SNOWFLAKE_ACCOUNT", "").strip()
    user = os.environ.get("SNOWFLAKE_USER", "").strip()
    password = os.environ.get("SNOWFLAKE_PASSWORD", "").strip()
    return bool(account and user and password)


def _get_conn():
    """Lazy connection; raises if not configured or connection fails."""
    if not _snowflake_configured():
        raise ValueError("Snowflake not configured (set SNOWFLAKE_ACCOUNT, SNOWFLAKE_USER, SNOWFLAKE_PASSWORD)")
    return snowflake.connector.connect(
        account=os.environ["SNOWFLAKE_ACCOUNT"].strip(),
        user=os.environ["SNOWFLAKE_USER"].strip(),
        password=os.environ["SNOWFLAKE_PASSWORD"].strip(),
        warehouse=os.environ.get("SNOWFLAKE_WAREHOUSE", "").strip() or None,
        database=os.environ.get("SNOWFLAKE_DATABASE", "").strip() or None,
        schema=os.environ.get("SNOWFLAKE_SCHEMA", "").strip() or None,
        role=os.environ.get("SNOWFLAKE_ROLE", "").strip() or None,
    )


def _report_table() -> str:
    return os.environ.get("SNOWFLAKE_REPORTS_TABLE", "report_events").strip()


def _escalation_table() -> str:
    return os.environ.get("SNOWFLAKE_ESCALATIONS_TABLE", "escalation_events").strip()


def _ensure_tables(conn) -> None:
    cur = conn.cursor()
    cur.execute(f"""
        CREATE TABLE IF NOT EXISTS {_report_table()} (
            report_id VARCHAR(64),
            keyword VARCHAR(128),
            category VARCHAR(32),
            severity VARCHAR(16),
            source VARCHAR(16),
            latitude FLOAT,
            longitude FLOAT,
            stress_confidence INTEGER,
            report_created_at VARCHAR(64),
            ingested_at TIMESTAMP_NTZ DEFAULT CURRENT_TIMESTAMP()
        )
    """)
    cur.execute(f"""
        CREATE TABLE IF NOT EXISTS {_escalation_table()} (
            report_id VARCHAR(64),
            category VARCHAR(32),
            reason VARCHAR(64),
            cluster_ids VARIANT,
            cluster_size INTEGER,
            notified BOOLEAN,
            resolved_count INTEGER,
            ingested_at TIMESTAMP_NTZ DEFAULT CURRENT_TIMESTAMP()
        )
    """)
    cur.close()


def sink_report_created(report: dict) -> None:
    """Write one created report (Report.to_dict()). No-op if Snowflake env is not set."""
    if not _snowflake_configured():
        return
    try:
        conn = _get_conn()
        _ensure_tables(conn)
        metrics = report.get("speech_metrics") or {}
        cur = conn.cursor()
        cur.execute(
            f"""INSERT INTO {_report_table()}
                (report_id, keyword, category, severity, source, latitude, longitude, stress_confidence, report_created_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)""",
            (
                report.get("id"),
                (report.get("keyword") or "")[:128],
                report.get("category"),
                report.get("severity"),
                report.get("source"),
                report.get("latitude"),
                report.get("longitude"),
                metrics.get("confidence"),
                report.get("created_at"),
            ),
        )
        cur.close()
        conn.close()
        logger.debug("snowflake report sink ok report_id=%s", report.get("id"))
    except Exception as e:
        logger.warning("snowflake report sink failed: %s", e, exc_info=True)


def sink_escalation(report: dict, result: dict) -> None:
    """Write one cluster decision (EscalationResult.to_dict()) for the triggering report."""
    if not _snowflake_configured():
        return
    try:
        conn = _get_conn()
        _ensure_tables(conn)
        cluster_ids = result.get("cluster_ids") or []
        cur = conn.cursor()
        # INSERT...SELECT so PARSE_JSON works (VALUES clause can reject it)
        cur.execute(
            f"""INSERT INTO {_escalation_table()}
                (report_id, category, reason, cluster_ids, cluster_size, notified, resolved_count)
                SELECT %s, %s, %s, PARSE_JSON(%s), %s, %s, %s""",
            (
                report.get("id"),
                report.get("category"),
                result.get("reason"),
                json.dumps(cluster_ids),
                len(cluster_ids),
                bool(result.get("notified")),
                int(result.get("resolved_count") or 0),
            ),
        )
        cur.close()
        conn.close()
        logger.debug("snowflake escalation sink ok report_id=%s", report.get("id"))
    except Exception as e:
        logger.warning("snowflake escalation sink failed: %s", e, exc_info=True)
