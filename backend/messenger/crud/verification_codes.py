# backend/messenger/crud/verification_codes.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from messenger.models.verification_code import VerificationCode


def get_code(db: Session, email: str) -> VerificationCode | None:
    stmt = select(VerificationCode).where(VerificationCode.email == email.lower())
    return db.execute(stmt).scalar_one_or_none()


def create_code(db: Session, email: str, code: str, expires_at: datetime) -> VerificationCode:
    """Store a code for ``email``, replacing any earlier one."""
    email = email.lower()
    db.execute(delete(VerificationCode).where(VerificationCode.email == email))

    vc = VerificationCode(email=email, code=code, expires_at=expires_at)
    db.add(vc)
    db.commit()
    db.refresh(vc)
    return vc


def delete_code(db: Session, email: str) -> bool:
    result = db.execute(delete(VerificationCode).where(VerificationCode.email == email.lower()))
    db.commit()
    return result.rowcount > 0
