# backend/messenger/api/routes/messages.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from messenger.db.session import get_db
from messenger.crud import conversations as conversations_crud
from messenger.crud import messages as messages_crud
from messenger.schemas.message import MessageOut

router = APIRouter(prefix='/api/messages', tags=['messages'])


@router.get('/{conversation_id}', response_model=List[MessageOut])
def conversation_history(conversation_id: int, db: Session = Depends(get_db)):
    """Full history of a conversation, oldest first."""
    if conversations_crud.get_by_id(db, conversation_id) is None:
        raise HTTPException(status_code=404, detail='Conversation not found')
    return messages_crud.list_for_conversation(db, conversation_id)
