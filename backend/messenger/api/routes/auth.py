# backend/messenger/api/routes/auth.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from messenger.db.session import get_db
from messenger.schemas.auth import (
    AuthOut,
    CodeRequestIn,
    CodeRequestOut,
    LoginIn,
    ProfileIn,
    RegisterIn,
    VerifyIn,
    VerifyOut,
)
from messenger.schemas.user import UserOut
from messenger.crud import users as users_crud
from messenger.crud import verification_codes as codes_crud
from messenger.core.security import (
    verify_password,
    create_access_token,
    create_profile_token,
    decode_profile_token,
    get_current_user,
)
from messenger.models.user import User
from messenger.security.rate_limit import is_rate_limited, record_auth_attempt, get_rate_limit_delay
from messenger.security.verification import generate_code, code_expiry, codes_match

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _auth_response(message: str, user: User) -> AuthOut:
    return AuthOut(
        message=message,
        user=UserOut.model_validate(user),
        access_token=create_access_token(subject=str(user.id)),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthOut)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    if users_crud.get_by_email(db, payload.email):
        raise HTTPException(status_code=400, detail="User with this email already exists")

    try:
        u = users_crud.create_user(
            db,
            email=payload.email,
            username=payload.username,
            password=payload.password,
            avatar=payload.avatar,
            status=payload.status,
            verified=True,
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to register %s", payload.email)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to register")

    logger.info("registered user %s", u.id)
    return _auth_response("Registration successful", u)


@router.post("/login", response_model=AuthOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    rate_limit_key = f"login:{payload.email.lower()}"
    if is_rate_limited(rate_limit_key):
        delay = get_rate_limit_delay(rate_limit_key)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many login attempts. Try again in {int(delay) or 1} seconds."
        )

    u = users_crud.get_by_email(db, payload.email)
    if not u or not verify_password(payload.password, u.password_hash):
        record_auth_attempt(rate_limit_key, success=False)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    record_auth_attempt(rate_limit_key, success=True)
    return _auth_response("Login successful", u)


@router.post("/request-code", response_model=CodeRequestOut)
def request_code(payload: CodeRequestIn, db: Session = Depends(get_db)):
    """
    Issue a one-time verification code for an email address.
    Delivering it (email/SMS) is up to an external sender.
    """
    code = generate_code()
    vc = codes_crud.create_code(db, payload.email, code, code_expiry())

    logger.info("verification code issued for %s", vc.email)
    logger.debug("verification code for %s is %s", vc.email, code)
    return CodeRequestOut(message="Verification code sent", expires_at=vc.expires_at)


@router.post("/verify", response_model=VerifyOut)
def verify(payload: VerifyIn, db: Session = Depends(get_db)):
    rate_limit_key = f"verify:{payload.email.lower()}"
    if is_rate_limited(rate_limit_key):
        delay = get_rate_limit_delay(rate_limit_key)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many verification attempts. Try again in {int(delay) or 1} seconds."
        )

    vc = codes_crud.get_code(db, payload.email)
    if vc is None:
        record_auth_attempt(rate_limit_key, success=False)
        raise HTTPException(status_code=400, detail="Invalid verification code")

    if vc.is_expired():
        codes_crud.delete_code(db, payload.email)
        raise HTTPException(status_code=400, detail="Verification code expired")

    if not codes_match(vc.code, payload.code):
        record_auth_attempt(rate_limit_key, success=False)
        logger.warning("wrong verification code for %s", vc.email)
        raise HTTPException(status_code=400, detail="Invalid verification code")

    record_auth_attempt(rate_limit_key, success=True)
    codes_crud.delete_code(db, payload.email)

    u = users_crud.get_by_email(db, payload.email)
    if u is None:
        return VerifyOut(verified=True, is_new_user=True, profile_token=create_profile_token(vc.email))

    if not u.verified:
        u = users_crud.update_user(db, u, verified=True)

    return VerifyOut(
        verified=True,
        is_new_user=False,
        user=UserOut.model_validate(u),
        access_token=create_access_token(subject=str(u.id)),
    )


@router.post("/profile", response_model=AuthOut)
def complete_profile(payload: ProfileIn, db: Session = Depends(get_db)):
    """Create (or update) the verified account for the email behind a profile token."""
    email = decode_profile_token(payload.profile_token)
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired profile token")

    changes = {"username": payload.username, "verified": True}
    if payload.avatar is not None:
        changes["avatar"] = payload.avatar
    if payload.status is not None:
        changes["status"] = payload.status

    try:
        u = users_crud.get_by_email(db, email)
        if u is None:
            u = users_crud.create_user(db, email=email, **changes)
        else:
            u = users_crud.update_user(db, u, **changes)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to complete profile for %s", email)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save profile")

    return _auth_response("Profile saved", u)


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user
