from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session, sessionmaker

from backend.app.api.deps import get_client_ip, get_current_active_admin, rate_limit
from backend.app.core.database import get_db, get_session_factory
from backend.app.middleware.rate_limit import BULK_POLICY, rate_limit_store
from backend.app.models.user import User
from backend.app.schemas.batch import BatchAdjustRequest, BatchResult
from backend.app.schemas.inventory import MassUpdateGrid, ThresholdOut, ThresholdUpdateRequest
from backend.app.schemas.user import UserOut
from backend.app.services.audit import log_action
from backend.app.services.inventory import list_thresholds, mass_update_grid, update_thresholds
from backend.app.services.reconciliation.aggregator import http_status_for
from backend.app.services.reconciliation.service import build_batch_service
from backend.app.services.user_management import (
    approve_user,
    list_users,
    notify_approved,
    reject_user,
)

router = APIRouter()


# ─── Mass update ─────────────────────────────────────────────────────────────


@router.get("/inventory/mass-update", response_model=MassUpdateGrid)
def get_mass_update_grid(
    db: Session = Depends(get_db),
    _admin: User = Depends(get_current_active_admin),
) -> MassUpdateGrid:
    return mass_update_grid(db)


@router.post("/inventory/mass-update", response_model=BatchResult)
def post_mass_update(
    payload: BatchAdjustRequest,
    request: Request,
    response: Response,
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
    admin: User = Depends(rate_limit(BULK_POLICY, guard=get_current_active_admin)),
) -> BatchResult:
    result = build_batch_service(session_factory).submit(
        payload.adjustments,
        user_id=admin.id,
        allow_partial=payload.allow_partial,
        note=payload.note,
        log_type=payload.log_type,
        ip_address=get_client_ip(request),
    )
    response.status_code = http_status_for(result)
    return result


# ─── Low-stock thresholds ────────────────────────────────────────────────────


@router.get("/products/thresholds", response_model=list[ThresholdOut])
def get_thresholds(
    db: Session = Depends(get_db),
    _admin: User = Depends(get_current_active_admin),
) -> list[ThresholdOut]:
    return list_thresholds(db)


@router.patch("/products/thresholds")
def patch_thresholds(
    payload: ThresholdUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> dict[str, int]:
    try:
        changed = update_thresholds(db, payload.updates, admin.id, get_client_ip(request))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return {"updatedCount": changed}


# ─── Rate limits ─────────────────────────────────────────────────────────────


@router.get("/rate-limits")
def get_rate_limits(
    _admin: User = Depends(get_current_active_admin),
) -> dict[str, dict[str, float | int]]:
    return rate_limit_store.snapshot()


@router.delete("/rate-limits")
def reset_rate_limits(
    request: Request,
    key: str | None = Query(default=None),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> dict[str, int]:
    cleared = rate_limit_store.reset(key)
    log_action(
        db,
        user_id=admin.id,
        action="RATE_LIMIT_RESET",
        resource_type="rate_limits",
        resource_id=key or "*",
        changes={"cleared": cleared},
        ip_address=get_client_ip(request),
    )
    db.commit()
    return {"cleared": cleared}


# ─── User approval ───────────────────────────────────────────────────────────


@router.get("/users/pending", response_model=list[UserOut])
def get_pending_users(
    db: Session = Depends(get_db),
    _admin: User = Depends(get_current_active_admin),
) -> list[User]:
    return list_users(db, pending_only=True)


@router.post("/users/{user_id}/approve", response_model=UserOut)
def approve_pending_user(
    user_id: UUID,
    request: Request,
    default_location_id: int | None = Query(default=None, alias="defaultLocationId"),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> User:
    try:
        user = approve_user(
            db,
            user_id=user_id,
            admin_id=admin.id,
            default_location_id=default_location_id,
            ip_address=get_client_ip(request),
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    db.commit()
    db.refresh(user)
    notify_approved(user)
    return user


@router.delete("/users/{user_id}/reject", response_model=UserOut)
def reject_pending_user(
    user_id: UUID,
    request: Request,
    reason: str | None = Query(default=None, max_length=500),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> User:
    try:
        user = reject_user(
            db,
            user_id=user_id,
            admin_id=admin.id,
            reason=reason,
            ip_address=get_client_ip(request),
        )
    except ValueError as e:
        code = (
            status.HTTP_404_NOT_FOUND if str(e) == "User not found" else status.HTTP_400_BAD_REQUEST
        )
        raise HTTPException(status_code=code, detail=str(e))
    db.commit()
    db.refresh(user)
    return user
