# backend/messenger/crud/users.py
from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from messenger.core.security import hash_password
from messenger.models.user import DEFAULT_STATUS, User

_UPDATABLE = {"username", "avatar", "status", "verified"}


def get_by_id(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def get_by_email(db: Session, email: str) -> User | None:
    stmt = select(User).where(User.email == email.lower())
    return db.execute(stmt).scalar_one_or_none()


def get_by_emails(db: Session, emails: Iterable[str]) -> list[User]:
    normalized = {e.lower() for e in emails}
    if not normalized:
        return []
    stmt = select(User).where(User.email.in_(normalized))
    return list(db.execute(stmt).scalars())


def create_user(
    db: Session,
    email: str,
    username: str,
    password: str | None = None,
    avatar: str | None = None,
    status: str | None = None,
    verified: bool = False,
) -> User:
    u = User(
        email=email.lower(),
        username=username,
        password_hash=hash_password(password) if password else None,
        avatar=avatar,
        status=status or DEFAULT_STATUS,
        verified=verified,
    )

    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def update_user(db: Session, user: User, **changes) -> User:
    unknown = set(changes) - _UPDATABLE
    if unknown:
        raise ValueError(f"Cannot update user fields: {', '.join(sorted(unknown))}")

    for field, value in changes.items():
        setattr(user, field, value)

    db.add(user)
    db.commit()
    db.refresh(user)
    return user
