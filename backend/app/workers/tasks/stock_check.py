"""Scheduled low-stock scan."""

from __future__ import annotations

import logging
from html import escape

from backend.app.workers.celery_app import celery

logger = logging.getLogger(__name__)


@celery.task(name="backend.app.workers.tasks.stock_check.scan_low_stock")
def scan_low_stock() -> dict:
    """Email a digest of every product at or below its threshold."""
    from backend.app.core.config import settings
    from backend.app.core.database import SessionLocal
    from backend.app.services.notification_service import NotificationService, NotificationType
    from backend.app.services.stock_alerts import find_low_stock_products

    with SessionLocal() as db:
        low = find_low_stock_products(db)

    logger.info("Low-stock scan found %d product(s)", len(low))
    if not low or not settings.LOW_STOCK_ALERT_RECIPIENTS:
        return {"low_stock": len(low), "sent": 0}

    items = "".join(
        f"<li>{escape(p.name)}: {p.current_stock} (threshold {p.threshold})</li>" for p in low
    )
    svc = NotificationService()
    sent = sum(
        svc.send(
            NotificationType.LOW_STOCK_DIGEST, recipient, count=str(len(low)), items=items
        )
        for recipient in settings.LOW_STOCK_ALERT_RECIPIENTS
    )
    return {"low_stock": len(low), "sent": sent}
