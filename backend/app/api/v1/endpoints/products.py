from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from backend.app.api.deps import get_approved_user, get_client_ip, get_current_active_admin
from backend.app.core.database import get_db
from backend.app.models.user import User
from backend.app.schemas.inventory import ProductCreate, ProductOut
from backend.app.services.inventory import create_product, list_products, set_product_deleted

router = APIRouter()


@router.get("", response_model=list[ProductOut])
def get_products(
    include_deleted: bool = Query(default=False, alias="includeDeleted"),
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_approved_user),
) -> list[ProductOut]:
    return list_products(db, include_deleted=include_deleted)


@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_new_product(
    payload: ProductCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> ProductOut:
    try:
        return create_product(db, payload, admin.id, get_client_ip(request))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.delete("/{product_id}", response_model=ProductOut)
def delete_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> ProductOut:
    return _set_deleted(db, product_id, True, admin, request)


@router.post("/{product_id}/restore", response_model=ProductOut)
def restore_product(
    product_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> ProductOut:
    return _set_deleted(db, product_id, False, admin, request)


def _set_deleted(
    db: Session, product_id: int, deleted: bool, admin: User, request: Request
) -> ProductOut:
    try:
        return set_product_deleted(
            db,
            product_id,
            deleted=deleted,
            user_id=admin.id,
            ip_address=get_client_ip(request),
        )
    except ValueError as e:
        code = (
            status.HTTP_404_NOT_FOUND if "not found" in str(e) else status.HTTP_400_BAD_REQUEST
        )
        raise HTTPException(status_code=code, detail=str(e))
