from __future__ import annotations

from datetime import datetime
from typing import Optional

from messenger.schemas.base import CamelModel, CamelRequest
from messenger.schemas.message import MessageOut
from messenger.schemas.user import UserOut


class ConversationCreate(CamelRequest):
    participant_a: int
    participant_b: int


class ConversationOut(CamelModel):
    id: int
    participant_a: int
    participant_b: int
    last_message_time: Optional[datetime] = None
    created_at: datetime


class ConversationCreateOut(CamelModel):
    message: str
    conversation: ConversationOut


class ConversationListItem(ConversationOut):
    """Conversation row for the listing screen."""

    other_participant: Optional[UserOut] = None
    latest_message: Optional[MessageOut] = None
    unread_count: int = 0
