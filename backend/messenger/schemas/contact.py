from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field, field_validator

from messenger.schemas.base import CamelModel, CamelRequest
from messenger.schemas.user import UserOut
from messenger.security.sanitizer import InputSanitizer


class ContactCreate(CamelRequest):
    user_id: int
    contact_id: int
    contact_name: str = Field(min_length=1, max_length=128)

    @field_validator('contact_name')
    @classmethod
    def validate_contact_name(cls, v: str) -> str:
        return InputSanitizer.sanitize_display_name(v)


class ContactOut(CamelModel):
    id: int
    user_id: int
    contact_id: int
    contact_name: str
    created_at: datetime
    contact_user: Optional[UserOut] = None


class ContactCreateOut(CamelModel):
    message: str
    contact: ContactOut


class ContactSyncIn(CamelRequest):
    user_id: int
    emails: List[EmailStr] = Field(max_length=500)


class ContactSyncOut(CamelModel):
    message: str
    added_contacts: List[ContactOut]
