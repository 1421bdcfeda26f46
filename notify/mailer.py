"""Alert email for an escalated cluster (SMTP). Skipped with a warning when not configured."""

import logging
import os
import smtplib
from email.message import EmailMessage
from typing import Optional

from core.models import Report

logger = logging.getLogger("distress_api.notify.mailer")

ALERT_SUBJECT = "Critical Public Safety Alert: Repeated Reports Detected"


def maps_url(latitude: Optional[float], longitude: Optional[float]) -> str:
    if latitude is None or longitude is None:
        return ""
    return f"https://www.google.com/maps?q={latitude},{longitude}"


def build_alert_text(summary: str, cluster: list[Report]) -> str:
    """Plain-text alert body. Category, severity and location come from the newest report."""
    first = cluster[0] if cluster else None
    category = first.category.value if first else "N/A"
    severity = first.severity.value if first else "N/A"
    if first is not None:
        location = f"Latitude {first.latitude}, Longitude {first.longitude}\nView on Google Maps: {maps_url(first.latitude, first.longitude)}"
    else:
        location = "N/A"
    numbered = "\n".join(f"{i}. {r.description or 'N/A'}" for i, r in enumerate(cluster, start=1))
    return (
        "Dear Administrator,\n\n"
        "This is to formally notify you that multiple reports concerning the same public safety issue have been detected.\n\n"
        f"Category       : {category}\n"
        f"Severity       : {severity}\n"
        f"Location       : {location}\n\n"
        f"AI-Generated Summary:\n{summary}\n\n"
        f"Reports ({len(cluster)}):\n{numbered}\n\n"
        "Please review this matter immediately.\n\n"
        "Regards,\n"
        "Distress Monitoring Service\n"
    )


class EmailNotifier:
    name = "email"

    def __init__(
        self,
        sender: Optional[str] = None,
        password: Optional[str] = None,
        recipient: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        timeout_s: float = 15.0,
    ):
        self.sender = sender if sender is not None else os.environ.get("ALERT_EMAIL", "")
        self.password = password if password is not None else os.environ.get("ALERT_EMAIL_PASSWORD", "")
        self.recipient = recipient if recipient is not None else os.environ.get("ADMIN_EMAIL", "")
        self.host = host or os.environ.get("SMTP_HOST") or "smtp.gmail.com"
        try:
            self.port = int(port or os.environ.get("SMTP_PORT") or 587)
        except ValueError:
            self.port = 587
        self.timeout_s = timeout_s

    @property
    def configured(self) -> bool:
        return bool(self.sender and self.password and self.recipient)

    def build_message(self, summary: str, cluster: list[Report]) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = ALERT_SUBJECT
        msg["From"] = f"Distress Alert System <{self.sender}>"
        msg["To"] = self.recipient
        msg.set_content(build_alert_text(summary, cluster))
        return msg

    def notify(self, summary: str, cluster: list[Report]) -> bool:
        if not self.configured:
            logger.warning("email not configured (ALERT_EMAIL, ALERT_EMAIL_PASSWORD, ADMIN_EMAIL); skipping alert email")
            return False
        msg = self.build_message(summary, cluster)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_s) as smtp:
            smtp.starttls()
            smtp.login(self.sender, self.password)
            smtp.send_message(msg)
        logger.info("alert email sent to=%s reports=%d", self.recipient, len(cluster))
        return True
