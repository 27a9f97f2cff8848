from __future__ import annotations

from datetime import datetime

from messenger.schemas.base import CamelModel


class MessageOut(CamelModel):
    """A persisted message as seen by clients, over HTTP and in channel frames."""

    id: int
    conversation_id: int
    sender_id: int
    content: str
    status: str
    timestamp: datetime
