from __future__ import annotations

from datetime import datetime, timedelta

from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError
from jose import jwt, JWTError

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from messenger.core.config import settings
from messenger.db.session import get_db


_ph = PasswordHasher(
    time_cost=2,
    memory_cost=102400,  # ~100 MB
    parallelism=8,
    hash_len=32,
    salt_len=16,
)

ACCESS_SCOPE = "access"
PROFILE_SCOPE = "profile"


def hash_password(password: str) -> str:
    return _ph.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    try:
        return _ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def create_access_token(subject: str, extra: dict | None = None, expires_minutes: int | None = None) -> str:
    minutes = settings.JWT_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    payload = {
        "sub": subject,
        "scope": ACCESS_SCOPE,
        "exp": datetime.utcnow() + timedelta(minutes=minutes),
    }
    if extra:
        payload.update(extra)

    return jwt.encode(
        payload,
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def create_profile_token(email: str) -> str:
    """Short-lived token proving ``email`` passed code verification."""
    return create_access_token(
        subject=email,
        extra={"scope": PROFILE_SCOPE},
        expires_minutes=settings.PROFILE_TOKEN_EXPIRE_MINUTES,
    )


def decode_access_token(token: str) -> dict | None:
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        return None


def decode_profile_token(token: str) -> str | None:
    payload = decode_access_token(token)
    if not payload or payload.get("scope") != PROFILE_SCOPE:
        return None
    return payload.get("sub")


_security = HTTPBearer()


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_security),
    db: Session = Depends(get_db),
):
    """
    Dependency: Extract JWT token, verify it, and fetch User object from DB.
    Expects: Authorization: Bearer <token>
    Raises: HTTPException 401 if token invalid/expired/user not found
    """
    from messenger.models.user import User  # avoid circular imports

    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub") or payload.get("scope") != ACCESS_SCOPE:
        raise _unauthorized()

    try:
        user_id = int(payload["sub"])
    except ValueError:
        raise _unauthorized()

    user = db.get(User, user_id)
    if not user:
        raise _unauthorized()

    return user
