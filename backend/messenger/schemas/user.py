from __future__ import annotations

from datetime import datetime
from typing import Optional

from messenger.schemas.base import CamelModel


class UserOut(CamelModel):
    """Public user record (never carries the password hash)."""

    id: int
    email: str
    username: str
    avatar: Optional[str] = None
    status: Optional[str] = None
    verified: bool
    created_at: datetime
