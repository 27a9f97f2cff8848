from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from messenger.schemas.base import CamelModel, CamelRequest
from messenger.schemas.user import UserOut
from messenger.security.sanitizer import InputSanitizer


class _ProfileFields(CamelRequest):
    username: str = Field(min_length=1, max_length=64, description="Display name")
    avatar: Optional[str] = Field(default=None, max_length=2048)
    status: Optional[str] = Field(default=None, max_length=255)

    @field_validator('username')
    @classmethod
    def validate_username(cls, v: str) -> str:
        return InputSanitizer.sanitize_display_name(v)

    @field_validator('status')
    @classmethod
    def validate_status(cls, v: Optional[str]) -> Optional[str]:
        return InputSanitizer.sanitize_status(v) if v is not None else v


class RegisterIn(_ProfileFields):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128, description="Password (8+ chars)")

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('Password cannot be blank')
        return v


class LoginIn(CamelRequest):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class AuthOut(CamelModel):
    message: str
    user: UserOut
    access_token: str


class CodeRequestIn(CamelRequest):
    email: EmailStr


class CodeRequestOut(CamelModel):
    message: str
    expires_at: datetime


class VerifyIn(CamelRequest):
    email: EmailStr
    code: str = Field(min_length=4, max_length=16, pattern=r'^\s*\d+\s*$')


class VerifyOut(CamelModel):
    verified: bool
    is_new_user: bool
    user: Optional[UserOut] = None
    access_token: Optional[str] = None
    profile_token: Optional[str] = None


class ProfileIn(_ProfileFields):
    profile_token: str = Field(min_length=1)
