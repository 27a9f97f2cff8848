from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from messenger.db.base import Base

DEFAULT_STATUS = "Hey, I'm using Messenger!"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)

    # Accounts created through the one-time-code flow have no password.
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    username: Mapped[str] = mapped_column(String(64), nullable=False)
    avatar: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str | None] = mapped_column(String(255), default=DEFAULT_STATUS, nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    contacts = relationship(
        "Contact",
        foreign_keys="Contact.user_id",
        back_populates="owner",
        cascade="all,delete",
    )
    sent_messages = relationship(
        "Message",
        back_populates="sender",
        cascade="all,delete",
    )
