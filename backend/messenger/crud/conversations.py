# backend/messenger/crud/conversations.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from messenger.models.conversation import Conversation


def get_by_id(db: Session, conversation_id: int) -> Conversation | None:
    return db.get(Conversation, conversation_id)


def get_by_participants(db: Session, user_a: int, user_b: int) -> Conversation | None:
    """Find the conversation for an unordered pair; (A, B) matches a stored (B, A)."""
    stmt = select(Conversation).where(
        or_(
            and_(Conversation.participant_a == user_a, Conversation.participant_b == user_b),
            and_(Conversation.participant_a == user_b, Conversation.participant_b == user_a),
        )
    ).order_by(Conversation.id)
    return db.execute(stmt).scalars().first()


def list_for_user(db: Session, user_id: int) -> list[Conversation]:
    stmt = select(Conversation).where(
        or_(Conversation.participant_a == user_id, Conversation.participant_b == user_id)
    )
    return list(db.execute(stmt).scalars())


def get_or_create(db: Session, user_a: int, user_b: int) -> tuple[Conversation, bool]:
    """Return the pair's conversation, creating it if needed. Second item is True if created."""
    existing = get_by_participants(db, user_a, user_b)
    if existing is not None:
        return existing, False

    conv = Conversation(participant_a=user_a, participant_b=user_b, last_message_time=datetime.utcnow())
    db.add(conv)
    db.commit()
    db.refresh(conv)
    return conv, True


def touch_last_message_time(db: Session, conversation: Conversation, when: datetime | None) -> Conversation:
    """Set the list-ordering timestamp; ``None`` means now. Caller commits."""
    conversation.last_message_time = when or datetime.utcnow()
    db.add(conversation)
    return conversation
