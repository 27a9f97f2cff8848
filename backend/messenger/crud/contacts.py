# backend/messenger/crud/contacts.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from messenger.models.contact import Contact


def list_for_user(db: Session, user_id: int) -> list[Contact]:
    stmt = select(Contact).where(Contact.user_id == user_id).order_by(Contact.id)
    return list(db.execute(stmt).unique().scalars())


def get_pair(db: Session, user_id: int, contact_id: int) -> Contact | None:
    stmt = select(Contact).where(Contact.user_id == user_id, Contact.contact_id == contact_id)
    return db.execute(stmt).unique().scalar_one_or_none()


def create_contact(db: Session, user_id: int, contact_id: int, contact_name: str, commit: bool = True) -> Contact:
    c = Contact(user_id=user_id, contact_id=contact_id, contact_name=contact_name)
    db.add(c)
    if commit:
        db.commit()
        db.refresh(c)
    return c


def delete_contact(db: Session, user_id: int, contact_id: int) -> bool:
    c = get_pair(db, user_id, contact_id)
    if c is None:
        return False
    db.delete(c)
    db.commit()
    return True
