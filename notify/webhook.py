"""Webhook alert channel (JSON POST via httpx) and notifier selection."""

import logging
import os
from typing import Optional

import httpx

from core.models import Report
from notify.mailer import EmailNotifier

logger = logging.getLogger("distress_api.notify.webhook")


class WebhookNotifier:
    name = "webhook"

    def __init__(self, url: Optional[str] = None, timeout_s: float = 15.0, transport: Optional[httpx.BaseTransport] = None):
        self.url = (url if url is not None else os.environ.get("ALERT_WEBHOOK_URL", "")).strip()
        self.timeout_s = timeout_s
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def payload(self, summary: str, cluster: list[Report]) -> dict:
        return {
            "type": "cluster_alert",
            "summary": summary,
            "category": cluster[0].category.value if cluster else None,
            "report_count": len(cluster),
            "reports": [r.to_dict() for r in cluster],
        }

    def notify(self, summary: str, cluster: list[Report]) -> bool:
        if not self.configured:
            logger.warning("ALERT_WEBHOOK_URL not set; skipping webhook alert")
            return False
        with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
            r = client.post(self.url, json=self.payload(summary, cluster))
        if not r.is_success:
            logger.warning("webhook alert failed status=%d body=%r", r.status_code, r.text[:200])
            return False
        logger.info("webhook alert sent reports=%d", len(cluster))
        return True


def get_notifier():
    """Email if mail credentials are set, else webhook if ALERT_WEBHOOK_URL is set, else None."""
    email = EmailNotifier()
    if email.configured:
        return email
    webhook = WebhookNotifier()
    if webhook.configured:
        return webhook
    return None
