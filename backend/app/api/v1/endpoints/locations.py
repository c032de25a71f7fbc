from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from backend.app.api.deps import get_approved_user, get_client_ip, get_current_active_admin
from backend.app.core.database import get_db
from backend.app.models.user import User
from backend.app.schemas.inventory import LocationCreate, LocationOut
from backend.app.services.inventory import create_location, list_locations

router = APIRouter()


@router.get("", response_model=list[LocationOut])
def get_locations(
    db: Session = Depends(get_db),
    _current_user: User = Depends(get_approved_user),
) -> list[LocationOut]:
    return list_locations(db)


@router.post("", response_model=LocationOut, status_code=status.HTTP_201_CREATED)
def create_new_location(
    payload: LocationCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_active_admin),
) -> LocationOut:
    try:
        return create_location(db, payload, admin.id, get_client_ip(request))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
