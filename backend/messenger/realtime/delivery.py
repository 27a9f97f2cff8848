"""
Message delivery lifecycle.

A message starts as ``sent`` when it is persisted, becomes ``delivered``
once it has been pushed to the counterpart's live channel and ``read`` once
the counterpart acknowledges it with a read receipt. ``read`` is terminal.

Statuses only move forward. A receipt may jump straight from ``sent`` to
``read`` (the counterpart was offline at send time and caught up through
the history endpoint), but a late ``delivered`` never overwrites ``read``.
Only the current value is stored on the message; there is no receipt log.
"""
from __future__ import annotations

from enum import Enum
from typing import Iterable, Protocol


class MessageStatus(str, Enum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


_RANK = {
    MessageStatus.SENT: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
}


class _HasStatus(Protocol):
    sender_id: int
    status: str


def rank(status: str | MessageStatus) -> int:
    return _RANK[MessageStatus(status)]


def can_advance(current: str | MessageStatus, target: str | MessageStatus) -> bool:
    """True if moving from ``current`` to ``target`` is a forward step."""
    return rank(target) > rank(current)


def advance(message: _HasStatus, target: str | MessageStatus) -> bool:
    """
    Move ``message.status`` to ``target`` if that is a forward transition.

    Returns True if the status changed. Backward or repeated transitions
    leave the message untouched, which keeps duplicate receipts harmless.
    """
    target = MessageStatus(target)
    if not can_advance(message.status, target):
        return False
    message.status = target.value
    return True


def is_unread_for(message: _HasStatus, viewer_id: int) -> bool:
    return message.sender_id != viewer_id and message.status != MessageStatus.READ.value


def count_unread(messages: Iterable[_HasStatus], viewer_id: int) -> int:
    # recomputed on every listing, never stored
    return sum(1 for m in messages if is_unread_for(m, viewer_id))
