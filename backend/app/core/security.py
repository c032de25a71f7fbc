from __future__ import annotations

import re
import threading
import time
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from backend.app.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALGORITHM = "HS256"

# In-memory token deny-list for logout, token -> exp timestamp.
# With multiple replicas this belongs in Redis.
_revoked_tokens: dict[str, float] = {}
_revoked_lock = threading.Lock()


def create_access_token(subject: str, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": subject, "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def validate_password_strength(password: str) -> str | None:
    """Return an error message if *password* is too weak, else ``None``."""
    if len(password) < 12:
        return "Password must be at least 12 characters"
    if not re.search(r"[A-Za-z]", password) or not re.search(r"\d", password):
        return "Password must contain both letters and digits"
    return None


def revoke_token(token: str) -> None:
    """Add a token to the deny-list until it would have expired anyway."""
    try:
        claims = jwt.get_unverified_claims(token)
        expires_at = float(claims.get("exp", 0))
    except JWTError:
        expires_at = time.time()
    cleanup_expired_tokens()
    with _revoked_lock:
        _revoked_tokens[token] = expires_at


def is_token_revoked(token: str) -> bool:
    with _revoked_lock:
        return token in _revoked_tokens


def cleanup_expired_tokens() -> int:
    """Drop deny-list entries whose token has expired. Returns how many."""
    now = time.time()
    with _revoked_lock:
        expired = [t for t, exp in _revoked_tokens.items() if exp <= now]
        for token in expired:
            del _revoked_tokens[token]
    return len(expired)
