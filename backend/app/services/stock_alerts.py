"""Low-stock detection and alert dispatch."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.models.inventory import Product, StockLevel
from backend.app.schemas.batch import AppliedItem
from backend.app.services.notification_service import NotificationType
from backend.app.workers.tasks.notifications import send_notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LowStockProduct:
    id: int
    name: str
    current_stock: int
    threshold: int


def _totals_query(product_ids: Iterable[int] | None = None):
    stmt = (
        select(
            Product.id,
            Product.name,
            Product.low_stock_threshold,
            func.coalesce(func.sum(StockLevel.quantity), 0).label("total"),
        )
        .outerjoin(StockLevel, StockLevel.product_id == Product.id)
        .where(Product.deleted_at.is_(None), Product.low_stock_threshold > 0)
        .group_by(Product.id, Product.name, Product.low_stock_threshold)
    )
    if product_ids is not None:
        stmt = stmt.where(Product.id.in_(list(product_ids)))
    return stmt


def find_low_stock_products(db: Session) -> list[LowStockProduct]:
    """Every live product whose total stock across locations is at or below
    its threshold, most critical first."""
    low = [
        LowStockProduct(id=pid, name=name, current_stock=int(total), threshold=threshold)
        for pid, name, threshold, total in db.execute(_totals_query())
        if int(total) <= threshold
    ]
    low.sort(key=lambda p: (p.current_stock, p.name))
    return low


def threshold_crossings(db: Session, applied: Iterable[AppliedItem]) -> list[LowStockProduct]:
    """Products that went from above their threshold to at-or-below it
    because of *applied*."""
    net: dict[int, int] = defaultdict(int)
    for item in applied:
        net[item.product_id] += item.delta
    if not net:
        return []

    crossed = []
    for pid, name, threshold, total in db.execute(_totals_query(net)):
        after = int(total)
        before = after - net[pid]
        if before > threshold >= after:
            crossed.append(
                LowStockProduct(id=pid, name=name, current_stock=after, threshold=threshold)
            )
    return crossed


def dispatch_low_stock_alerts(products: Iterable[LowStockProduct]) -> int:
    """Queue one LOW_STOCK_ALERT per product and recipient. Returns how many
    were queued."""
    products = list(products)
    if not products:
        return 0
    if not settings.NOTIFICATION_ENABLED or not settings.LOW_STOCK_ALERT_RECIPIENTS:
        logger.info("Low-stock alerts disabled, %d product(s) not notified", len(products))
        return 0

    queued = 0
    for product in products:
        for recipient in settings.LOW_STOCK_ALERT_RECIPIENTS:
            try:
                send_notification.delay(
                    NotificationType.LOW_STOCK_ALERT.value,
                    recipient,
                    {
                        "product_name": product.name,
                        "quantity": str(product.current_stock),
                        "threshold": str(product.threshold),
                    },
                )
                queued += 1
            except Exception:
                logger.exception(
                    "Could not queue low-stock alert for product %s to %s", product.id, recipient
                )
    return queued
