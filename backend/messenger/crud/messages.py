# backend/messenger/crud/messages.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from messenger.crud.conversations import get_by_id as get_conversation, touch_last_message_time
from messenger.models.message import Message
from messenger.realtime.delivery import MessageStatus, advance


def list_for_conversation(db: Session, conversation_id: int) -> list[Message]:
    stmt = (
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.timestamp, Message.id)
    )
    return list(db.execute(stmt).scalars())


def get_by_id(db: Session, message_id: int) -> Message | None:
    return db.get(Message, message_id)


def create_message(db: Session, conversation_id: int, sender_id: int, content: str) -> Message:
    """
    Persist a new ``sent`` message and bump the conversation's last message
    time in the same transaction. A missing conversation is not an error here.
    """
    msg = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        status=MessageStatus.SENT.value,
        timestamp=datetime.utcnow(),
    )
    db.add(msg)

    conversation = get_conversation(db, conversation_id)
    if conversation is not None:
        touch_last_message_time(db, conversation, msg.timestamp)

    db.commit()
    db.refresh(msg)
    return msg


def advance_status(db: Session, message_id: int, status: str | MessageStatus) -> Message | None:
    """Move a message forward to ``status``. Returns None for an unknown id."""
    msg = db.get(Message, message_id)
    if msg is None:
        return None

    if advance(msg, status):
        db.add(msg)
        db.commit()
        db.refresh(msg)
    return msg


def mark_read(db: Session, message_id: int, reader_id: int) -> Message | None:
    """
    Mark a message read on behalf of ``reader_id``.

    Returns None if the message does not exist or was not addressed to the
    reader (the reader sent it, or is not in its conversation).
    """
    msg = db.get(Message, message_id)
    if msg is None or msg.sender_id == reader_id:
        return None

    conversation = get_conversation(db, msg.conversation_id)
    if conversation is None or not conversation.has_participant(reader_id):
        return None

    if advance(msg, MessageStatus.READ):
        db.add(msg)
        db.commit()
        db.refresh(msg)
    return msg
