# backend/messenger/security/verification.py
import secrets
from datetime import datetime, timedelta

from messenger.core.config import settings


def generate_code(length: int | None = None) -> str:
    length = length or settings.VERIFICATION_CODE_LENGTH
    return "".join(secrets.choice("0123456789") for _ in range(length))


def code_expiry(now: datetime | None = None) -> datetime:
    return (now or datetime.utcnow()) + timedelta(minutes=settings.VERIFICATION_CODE_TTL_MINUTES)


def codes_match(expected: str, given: str) -> bool:
    return secrets.compare_digest(expected.encode(), given.strip().encode())
