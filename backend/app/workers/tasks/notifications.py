"""Async notification tasks."""

from __future__ import annotations

import logging

from backend.app.workers.celery_app import celery

logger = logging.getLogger(__name__)


@celery.task(name="backend.app.workers.tasks.notifications.send_notification")
def send_notification(
    notification_type: str,
    recipient_email: str,
    template_kwargs: dict,
) -> dict:
    """Render and email one notification."""
    from backend.app.services.notification_service import (
        NotificationService,
        NotificationType,
    )

    try:
        ntype = NotificationType(notification_type)
    except ValueError:
        logger.error("Dropping notification of unknown type %r", notification_type)
        return {"status": "error", "detail": f"Unknown type: {notification_type}"}

    ok = NotificationService().send(ntype, recipient_email, **template_kwargs)
    return {"status": "sent" if ok else "skipped", "recipient": recipient_email}
