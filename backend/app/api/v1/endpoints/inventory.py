from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session, sessionmaker

from backend.app.api.deps import get_approved_user, get_client_ip, rate_limit
from backend.app.core.database import get_db, get_session_factory
from backend.app.middleware.rate_limit import BULK_POLICY, INVENTORY_POLICY
from backend.app.models.user import User
from backend.app.schemas.batch import BatchAdjustRequest, BatchResult
from backend.app.schemas.inventory import InventoryLogOut, LowStockOut, StockLevelOut
from backend.app.services.inventory import list_inventory_logs, list_stock_levels
from backend.app.services.reconciliation.aggregator import http_status_for
from backend.app.services.reconciliation.service import build_batch_service
from backend.app.services.stock_alerts import find_low_stock_products

router = APIRouter()


@router.get("/stock-levels", response_model=list[StockLevelOut])
def get_stock_levels(
    location_id: int | None = Query(default=None, alias="locationId"),
    product_id: int | None = Query(default=None, alias="productId"),
    db: Session = Depends(get_db),
    _current_user: User = Depends(rate_limit(INVENTORY_POLICY)),
) -> list[StockLevelOut]:
    return list_stock_levels(db, location_id=location_id, product_id=product_id)


@router.post("/batch-adjust", response_model=BatchResult)
def batch_adjust(
    payload: BatchAdjustRequest,
    request: Request,
    response: Response,
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
    current_user: User = Depends(rate_limit(BULK_POLICY)),
) -> BatchResult:
    """Apply stock deltas in bounded transactions.

    200 when anything was applied (``partial`` tells whether some items
    need follow-up), 400 when every item failed validation, 500 otherwise.
    """
    result = build_batch_service(session_factory).submit(
        payload.adjustments,
        user_id=current_user.id,
        allow_partial=payload.allow_partial,
        note=payload.note,
        log_type=payload.log_type,
        ip_address=get_client_ip(request),
    )
    response.status_code = http_status_for(result)
    return result


@router.get("/logs", response_model=list[InventoryLogOut])
def get_inventory_logs(
    product_id: int | None = Query(default=None, alias="productId"),
    location_id: int | None = Query(default=None, alias="locationId"),
    batch_id: str | None = Query(default=None, alias="batchId"),
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
    _current_user: User = Depends(rate_limit(INVENTORY_POLICY)),
) -> list[InventoryLogOut]:
    return list_inventory_logs(
        db, product_id=product_id, location_id=location_id, batch_id=batch_id, limit=limit
    )


@router.get("/low-stock", response_model=list[LowStockOut])
def get_low_stock(
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_approved_user),
) -> list[LowStockOut]:
    return find_low_stock_products(db)
