from __future__ import annotations

from collections.abc import Callable
from uuid import UUID

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from backend.app.core.config import settings
from backend.app.core.database import get_db
from backend.app.core.security import ALGORITHM, is_token_revoked
from backend.app.middleware.rate_limit import RateLimitPolicy, enforce
from backend.app.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login/access-token")


def get_current_user(
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    # Revoked by logout
    if is_token_revoked(token):
        raise credentials_exception

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str | None = payload.get("sub")
        if user_id is None:
            raise credentials_exception
        uid = UUID(user_id)
    except (JWTError, ValueError):
        raise credentials_exception

    user = db.get(User, uid)
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user"
        )
    return user


def get_approved_user(current_user: User = Depends(get_current_user)) -> User:
    """Admins are always approved; everyone else waits for an admin."""
    if not (current_user.is_admin or current_user.is_approved):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account pending administrator approval",
        )
    return current_user


def get_current_active_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


def rate_limit(
    policy: RateLimitPolicy, guard: Callable[..., User] = get_approved_user
) -> Callable[..., User]:
    """Dependency factory: run *guard*, then count the request per user."""

    def dependency(
        response: Response,
        current_user: User = Depends(guard),
    ) -> User:
        enforce(policy, f"user:{current_user.id}", response)
        return current_user

    return dependency


def get_client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"
