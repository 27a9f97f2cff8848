# backend/messenger/models/message.py
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from messenger.db.base import Base
from messenger.realtime.delivery import MessageStatus


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("idx_messages_conversation_time", "conversation_id", "timestamp"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    conversation_id: Mapped[int] = mapped_column(ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False)
    sender_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)

    # sent -> delivered -> read, see realtime.delivery
    status: Mapped[str] = mapped_column(String(16), default=MessageStatus.SENT.value, nullable=False)

    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    sender = relationship("User", back_populates="sent_messages")
    conversation = relationship("Conversation", back_populates="messages")
