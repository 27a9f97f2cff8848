from datetime import datetime

from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from messenger.db.base import Base


class Conversation(Base):
    """Two-party conversation.

    The pair is unordered: (A, B) and (B, A) name the same conversation.
    Uniqueness of the pair is enforced by ``crud.conversations``, not by a
    database constraint.
    """

    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(primary_key=True)

    participant_a: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    participant_b: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)

    # denormalized, drives list ordering
    last_message_time: Mapped[datetime | None] = mapped_column(DateTime, default=datetime.utcnow, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    messages = relationship("Message", back_populates="conversation", cascade="all,delete-orphan")

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.participant_a, self.participant_b)

    def counterpart_of(self, user_id: int) -> int:
        return self.participant_b if self.participant_a == user_id else self.participant_a
