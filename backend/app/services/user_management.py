"""User accounts and the admin approval workflow.

All mutations are audit-logged. This module does NOT call db.commit();
the caller (endpoint) is responsible for committing.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.core.security import get_password_hash
from backend.app.models.inventory import Location
from backend.app.models.user import User
from backend.app.services.audit import log_action

logger = logging.getLogger(__name__)


def list_users(db: Session, *, pending_only: bool = False) -> list[User]:
    """Return users ordered by creation date descending."""
    query = db.query(User)
    if pending_only:
        query = query.filter(
            User.is_approved.is_(False), User.is_admin.is_(False), User.is_active.is_(True)
        )
    return query.order_by(User.created_at.desc()).all()


def create_user(
    db: Session,
    *,
    username: str,
    password: str,
    email: str | None = None,
    is_admin: bool = False,
    is_approved: bool = False,
    created_by: UUID | None = None,
    ip_address: str | None = None,
) -> User:
    """Create a user account. Raises ValueError if the username or email is taken."""
    existing = db.query(User).filter(
        func.lower(User.username) == username.lower()
    ).first()
    if existing:
        raise ValueError("Username already exists")
    if email and db.query(User).filter(func.lower(User.email) == email.lower()).first():
        raise ValueError("Email already in use")

    user = User(
        username=username,
        email=email,
        hashed_password=get_password_hash(password),
        is_admin=is_admin,
        is_approved=is_approved or is_admin,
    )
    db.add(user)
    db.flush()

    log_action(
        db,
        user_id=created_by,
        action="USER_CREATED",
        resource_type="users",
        resource_id=str(user.id),
        changes={"username": username, "is_admin": is_admin, "is_approved": user.is_approved},
        ip_address=ip_address,
    )
    return user


def approve_user(
    db: Session,
    *,
    user_id: UUID,
    admin_id: UUID,
    default_location_id: int | None = None,
    ip_address: str | None = None,
) -> User:
    """Approve a pending account, optionally pinning a default location."""
    user = db.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    if user.is_approved:
        raise ValueError("User is already approved")
    if not user.is_active:
        raise ValueError("User is deactivated")
    if default_location_id is not None and db.get(Location, default_location_id) is None:
        raise ValueError(f"Location with ID {default_location_id} not found")

    user.is_approved = True
    user.approved_at = datetime.now(timezone.utc)
    user.approved_by = admin_id
    user.default_location_id = default_location_id
    db.flush()

    log_action(
        db,
        user_id=admin_id,
        action="USER_APPROVED",
        resource_type="users",
        resource_id=str(user.id),
        changes={"default_location_id": default_location_id},
        ip_address=ip_address,
    )
    return user


def reject_user(
    db: Session,
    *,
    user_id: UUID,
    admin_id: UUID,
    reason: str | None = None,
    ip_address: str | None = None,
) -> User:
    """Turn down a pending account.

    The row is deactivated rather than deleted so audit rows that reference
    it (failed logins, the sign-up itself) stay intact. It drops out of the
    pending list and can no longer log in.
    """
    user = db.get(User, user_id)
    if not user:
        raise ValueError("User not found")
    if user.is_admin or user.is_approved or not user.is_active:
        raise ValueError("Only pending accounts can be rejected")

    user.is_active = False
    db.flush()

    log_action(
        db,
        user_id=admin_id,
        action="USER_REJECTED",
        resource_type="users",
        resource_id=str(user.id),
        changes={"username": user.username, "reason": reason},
        ip_address=ip_address,
    )
    return user


def notify_approved(user: User) -> None:
    """Queue the approval email, if the user has an address."""
    if not (settings.NOTIFICATION_ENABLED and user.email):
        return
    from backend.app.workers.tasks.notifications import send_notification

    try:
        send_notification.delay("USER_APPROVED", user.email, {"username": user.username})
    except Exception:
        logger.exception("Could not queue approval email for user %s", user.id)
