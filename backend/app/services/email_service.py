"""SMTP delivery for alert emails."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Send HTML emails through the configured SMTP relay."""

    def build(self, to: str, subject: str, body_html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = settings.SMTP_FROM
        msg["To"] = to
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(body_html, subtype="html")
        return msg

    def send(self, to: str, subject: str, body_html: str) -> bool:
        """Returns ``True`` once the relay accepted the message."""
        if not settings.NOTIFICATION_ENABLED:
            logger.info("Notifications disabled, not emailing %s", to)
            return False

        msg = self.build(to, subject, body_html)
        try:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
                if settings.SMTP_USE_TLS:
                    server.starttls()
                if settings.SMTP_USERNAME:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send email to %s", to)
            return False
        logger.info("Email sent to %s: %s", to, subject)
        return True
