from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from backend.app.api.deps import get_client_ip, get_current_user, oauth2_scheme
from backend.app.core.database import get_db
from backend.app.core.security import create_access_token, revoke_token, verify_password
from backend.app.middleware.rate_limit import LOGIN_POLICY, SIGNUP_POLICY, enforce
from backend.app.models.user import User
from backend.app.schemas.user import SignupRequest, Token, UserOut
from backend.app.services.audit import log_action
from backend.app.services.user_management import create_user

router = APIRouter()


@router.post("/login/access-token", response_model=Token)
def login_access_token(
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
) -> Token:
    ip = get_client_ip(request)

    # Per-IP, before any password check
    enforce(LOGIN_POLICY, f"ip:{ip}", response)

    user = db.query(User).filter(User.username == form_data.username).first()

    if not user or not verify_password(form_data.password, user.hashed_password):
        log_action(
            db,
            user_id=user.id if user else None,
            action="LOGIN_FAILED",
            resource_type="auth",
            resource_id=form_data.username,
            ip_address=ip,
            changes={"reason": "invalid_credentials"},
        )
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        log_action(
            db,
            user_id=user.id,
            action="LOGIN_FAILED",
            resource_type="auth",
            resource_id=form_data.username,
            ip_address=ip,
            changes={"reason": "inactive_user"},
        )
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user"
        )

    log_action(
        db,
        user_id=user.id,
        action="LOGIN_SUCCESS",
        resource_type="auth",
        resource_id=str(user.id),
        ip_address=ip,
        changes={"username": user.username, "is_admin": user.is_admin},
    )
    db.commit()

    return Token(access_token=create_access_token(subject=str(user.id)))


@router.post("/signup", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def signup(
    payload: SignupRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
) -> User:
    """Register an account. It stays pending until an administrator approves it."""
    ip = get_client_ip(request)
    enforce(SIGNUP_POLICY, f"ip:{ip}", response)
    try:
        user = create_user(
            db,
            username=payload.username,
            password=payload.password,
            email=payload.email,
            ip_address=ip,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    db.commit()
    db.refresh(user)
    return user


@router.post("/logout")
def logout(token: str = Depends(oauth2_scheme)) -> dict[str, str]:
    """Invalidate the current access token."""
    revoke_token(token)
    return {"detail": "Logged out successfully"}


@router.get("/me", response_model=UserOut)
def read_me(current_user: User = Depends(get_current_user)) -> User:
    return current_user
