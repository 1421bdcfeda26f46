"""Analytics: dashboard aggregates over stored reports, and the optional Snowflake sink."""

from analytics.report_stats import report_analytics, speech_stress_stats
from analytics.snowflake_sink import sink_report_created, sink_escalation

__all__ = ["report_analytics", "speech_stress_stats", "sink_report_created", "sink_escalation"]
