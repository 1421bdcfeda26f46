"""External collaborators for escalation: summary generation and alert channels."""

from notify.summarizer import SummaryUnavailable, summarize_reports, summarizer_configured
from notify.mailer import EmailNotifier, build_alert_text
from notify.webhook import WebhookNotifier, get_notifier

__all__ = [
    "SummaryUnavailable",
    "summarize_reports",
    "summarizer_configured",
    "EmailNotifier",
    "build_alert_text",
    "WebhookNotifier",
    "get_notifier",
]
