# backend/messenger/models/__init__.py
from .user import User
from .contact import Contact
from .conversation import Conversation
from .message import Message
from .verification_code import VerificationCode

__all__ = ["User", "Contact", "Conversation", "Message", "VerificationCode"]
