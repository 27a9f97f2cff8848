# backend/messenger/api/routes/contacts.py
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from messenger.db.session import get_db
from messenger.crud import contacts as contacts_crud
from messenger.crud import users as users_crud
from messenger.schemas.contact import (
    ContactCreate,
    ContactCreateOut,
    ContactOut,
    ContactSyncIn,
    ContactSyncOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/contacts', tags=['contacts'])


def _require_user(db: Session, user_id: int):
    u = users_crud.get_by_id(db, user_id)
    if u is None:
        raise HTTPException(status_code=404, detail='User not found')
    return u


@router.get('/{user_id}', response_model=List[ContactOut])
def list_contacts(user_id: int, db: Session = Depends(get_db)):
    """Contacts of a user, each with the contact's user record."""
    return contacts_crud.list_for_user(db, user_id)


@router.post('', status_code=status.HTTP_201_CREATED, response_model=ContactCreateOut)
def add_contact(payload: ContactCreate, db: Session = Depends(get_db)):
    if payload.user_id == payload.contact_id:
        raise HTTPException(status_code=400, detail='Cannot add yourself as a contact')

    _require_user(db, payload.user_id)
    _require_user(db, payload.contact_id)

    if contacts_crud.get_pair(db, payload.user_id, payload.contact_id):
        raise HTTPException(status_code=409, detail='Contact already exists')

    try:
        contact = contacts_crud.create_contact(db, payload.user_id, payload.contact_id, payload.contact_name)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail='Contact already exists')

    return ContactCreateOut(message='Contact added successfully', contact=ContactOut.model_validate(contact))


def _add_missing_contacts(db: Session, user_id: int, emails) -> list:
    existing = {c.contact_id for c in contacts_crud.list_for_user(db, user_id)}

    added = []
    for u in users_crud.get_by_emails(db, emails):
        if u.id == user_id or u.id in existing:
            continue
        added.append(contacts_crud.create_contact(db, user_id, u.id, u.username, commit=False))
        existing.add(u.id)

    db.commit()
    for c in added:
        db.refresh(c)
    return added


@router.post('/sync', response_model=ContactSyncOut)
def sync_contacts(payload: ContactSyncIn, db: Session = Depends(get_db)):
    """
    Match an address book against registered users.
    Every registered, not yet added address becomes a contact named after the user.
    """
    _require_user(db, payload.user_id)

    try:
        added = _add_missing_contacts(db, payload.user_id, payload.emails)
    except IntegrityError:
        # another writer added some of the same contacts; re-read and go again
        db.rollback()
        logger.info("contact sync for user %s raced another writer, retrying", payload.user_id)
        try:
            added = _add_missing_contacts(db, payload.user_id, payload.emails)
        except IntegrityError:
            db.rollback()
            raise HTTPException(status_code=409, detail='Contacts changed during sync, try again')

    logger.info("contact sync for user %s added %d contacts", payload.user_id, len(added))
    return ContactSyncOut(
        message='Contacts synced successfully',
        added_contacts=[ContactOut.model_validate(c) for c in added],
    )


@router.delete('/{user_id}/{contact_id}')
def remove_contact(user_id: int, contact_id: int, db: Session = Depends(get_db)):
    if not contacts_crud.delete_contact(db, user_id, contact_id):
        raise HTTPException(status_code=404, detail='Contact not found')
    return {'status': 'ok'}
