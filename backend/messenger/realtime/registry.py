"""Process-wide table of live channels, one per authenticated user."""
from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class Channel(Protocol):
    """Anything that can carry an outbound text frame (a WebSocket, or a fake in tests)."""

    async def send_text(self, data: str) -> None: ...


class ConnectionRegistry:
    """
    Maps a user id to the single channel currently bound to it.

    The newest bind wins. Replaced channels are only unregistered, not
    closed. All mutations happen on the event loop thread, so no locking is
    needed; never touch a registry from a worker thread.
    """

    def __init__(self) -> None:
        self._channels: Dict[int, Channel] = {}

    def bind(self, user_id: int, channel: Channel) -> None:
        previous = self._channels.pop(user_id, None)
        if previous is not None and previous is not channel:
            logger.info("user %s connected again, replacing previous channel", user_id)
        self._channels[user_id] = channel

    def lookup(self, user_id: int) -> Optional[Channel]:
        return self._channels.get(user_id)

    def unbind(self, user_id: int, channel: Channel) -> bool:
        """
        Remove the binding for ``user_id`` only if ``channel`` still owns it.

        A close event arriving from a channel that has since been replaced
        must not evict the newer connection.
        """
        if self._channels.get(user_id) is not channel:
            return False
        del self._channels[user_id]
        return True

    def clear(self) -> None:
        self._channels.clear()

    def __len__(self) -> int:
        return len(self._channels)
