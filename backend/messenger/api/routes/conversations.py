# backend/messenger/api/routes/conversations.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from messenger.db.session import get_db
from messenger.crud import conversations as conversations_crud
from messenger.crud import messages as messages_crud
from messenger.crud import users as users_crud
from messenger.realtime.delivery import count_unread
from messenger.schemas.conversation import (
    ConversationCreate,
    ConversationCreateOut,
    ConversationListItem,
    ConversationOut,
)
from messenger.schemas.message import MessageOut
from messenger.schemas.user import UserOut

router = APIRouter(prefix='/api/conversations', tags=['conversations'])


def _newest_first(items: List[ConversationListItem]) -> List[ConversationListItem]:
    # conversations without a timestamp go last
    dated = sorted((i for i in items if i.last_message_time), key=lambda i: i.last_message_time, reverse=True)
    return dated + [i for i in items if not i.last_message_time]


@router.get('/{user_id}', response_model=List[ConversationListItem])
def list_conversations(user_id: int, db: Session = Depends(get_db)):
    items = []
    for conv in conversations_crud.list_for_user(db, user_id):
        other = users_crud.get_by_id(db, conv.counterpart_of(user_id))
        history = messages_crud.list_for_conversation(db, conv.id)

        item = ConversationListItem.model_validate(conv)
        item.other_participant = UserOut.model_validate(other) if other else None
        item.latest_message = MessageOut.model_validate(history[-1]) if history else None
        item.unread_count = count_unread(history, user_id)
        items.append(item)

    return _newest_first(items)


@router.post('', response_model=ConversationCreateOut, status_code=status.HTTP_201_CREATED)
def start_conversation(payload: ConversationCreate, response: Response, db: Session = Depends(get_db)):
    if payload.participant_a == payload.participant_b:
        raise HTTPException(status_code=400, detail='A conversation needs two different participants')

    for user_id in (payload.participant_a, payload.participant_b):
        if users_crud.get_by_id(db, user_id) is None:
            raise HTTPException(status_code=404, detail='User not found')

    conv, created = conversations_crud.get_or_create(db, payload.participant_a, payload.participant_b)
    if not created:
        response.status_code = status.HTTP_200_OK
        return ConversationCreateOut(message='Conversation already exists', conversation=ConversationOut.model_validate(conv))

    return ConversationCreateOut(message='Conversation created successfully', conversation=ConversationOut.model_validate(conv))
