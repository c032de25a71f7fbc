"""Template-based notification service."""

from __future__ import annotations

import logging
from enum import Enum

from backend.app.services.email_service import EmailService

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    LOW_STOCK_ALERT = "LOW_STOCK_ALERT"
    LOW_STOCK_DIGEST = "LOW_STOCK_DIGEST"
    USER_APPROVED = "USER_APPROVED"


_TEMPLATES: dict[NotificationType, dict[str, str]] = {
    NotificationType.LOW_STOCK_ALERT: {
        "subject": "Low Stock Alert: {product_name}",
        "body": (
            "<h2>Low Stock Alert</h2>"
            "<p>Product <strong>{product_name}</strong> is at or below its "
            "threshold of {threshold}. Quantity across all locations: "
            "<strong>{quantity}</strong>.</p>"
        ),
    },
    NotificationType.LOW_STOCK_DIGEST: {
        "subject": "Daily stock check: {count} product(s) low",
        "body": "<h2>Low Stock Summary</h2><ul>{items}</ul>",
    },
    NotificationType.USER_APPROVED: {
        "subject": "Your account has been approved",
        "body": (
            "<p>Hello {username},</p>"
            "<p>An administrator approved your account. You can now sign in.</p>"
        ),
    },
}


class NotificationService:
    """Send typed notifications using predefined templates."""

    def __init__(self, email: EmailService | None = None) -> None:
        self._email = email or EmailService()

    def render(self, notification_type: NotificationType, **kwargs: str) -> tuple[str, str]:
        template = _TEMPLATES[notification_type]
        return template["subject"].format(**kwargs), template["body"].format(**kwargs)

    def send(
        self,
        notification_type: NotificationType,
        recipient_email: str,
        **kwargs: str,
    ) -> bool:
        """Render the template for *notification_type* and send via email."""
        if notification_type not in _TEMPLATES:
            logger.error("Unknown notification type: %s", notification_type)
            return False
        try:
            subject, body = self.render(notification_type, **kwargs)
        except KeyError as exc:
            logger.error("Missing template field %s for %s", exc, notification_type.value)
            return False
        return self._email.send(to=recipient_email, subject=subject, body_html=body)
