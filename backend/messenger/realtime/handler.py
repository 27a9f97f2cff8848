"""
Per-channel protocol handler.

One ``ProtocolHandler`` lives as long as one channel. It remembers which
user the channel authenticated as, interprets inbound frames and drives the
record store, the connection registry and outbound frames:

- ``authenticate``  binds the user to this channel in the registry
- ``message``       persists, fans out to a live counterpart, acks the sender
- ``read_receipt``  marks messages read and notifies their senders

Frames are handled one at a time; the caller awaits ``handle`` before
reading the next frame, so a channel's replies go out in the order its
frames arrived. Store calls run in the threadpool so other channels are
served meanwhile. Registry access stays on the event loop.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.websockets import WebSocketDisconnect

from messenger.core.config import settings
from messenger.crud import conversations as conversations_crud
from messenger.crud import messages as messages_crud
from messenger.crud import users as users_crud
from messenger.realtime.delivery import MessageStatus
from messenger.realtime.registry import Channel, ConnectionRegistry
from messenger.schemas.frames import (
    AuthenticateFrame,
    AuthenticatedFrame,
    ErrorFrame,
    MessageSentFrame,
    MessageUpdateFrame,
    NewMessageFrame,
    OutboundFrame,
    ReadReceiptFrame,
    SendMessageFrame,
    parse_inbound,
)
from messenger.schemas.message import MessageOut
from messenger.security.sanitizer import InputSanitizer

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors raised by a channel whose peer has gone away.
TRANSPORT_ERRORS = (WebSocketDisconnect, RuntimeError, OSError)


class ProtocolHandler:
    def __init__(
        self,
        channel: Channel,
        registry: ConnectionRegistry,
        session_factory: Callable[[], Session],
    ) -> None:
        self.channel = channel
        self.registry = registry
        self._session_factory = session_factory
        self.user_id: Optional[int] = None

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None

    async def handle(self, raw: str | bytes) -> None:
        """Process one inbound frame to completion."""
        try:
            frame = parse_inbound(raw)
        except ValidationError as e:
            logger.warning("malformed frame from user %s: %s", self.user_id, e.errors(include_url=False))
            await self._reply(ErrorFrame(error="invalid frame"))
            return

        try:
            if isinstance(frame, AuthenticateFrame):
                await self._on_authenticate(frame)
            elif not self.authenticated:
                logger.warning("%s frame before authentication, ignoring", frame.type)
                await self._reply(ErrorFrame(error="not authenticated"))
            elif isinstance(frame, SendMessageFrame):
                await self._on_send_message(frame)
            elif isinstance(frame, ReadReceiptFrame):
                await self._on_read_receipt(frame)
            else:
                raise TypeError(f"unhandled frame type {type(frame).__name__}")
        except SQLAlchemyError:
            # Dropped without a reply; the client re-issues.
            logger.exception("store error while handling %s frame for user %s", frame.type, self.user_id)

    def close(self) -> None:
        """Channel closed: release this channel's registry entry, if it still owns it."""
        if self.user_id is not None and self.registry.unbind(self.user_id, self.channel):
            logger.info("user %s disconnected", self.user_id)

    # frame handlers

    async def _on_authenticate(self, frame: AuthenticateFrame) -> None:
        user = await self._store(users_crud.get_by_id, frame.user_id)
        if user is None:
            logger.warning("authentication failed for unknown user %s", frame.user_id)
            await self._reply(AuthenticatedFrame(success=False, error="User not found"))
            return

        if self.user_id is not None and self.user_id != user.id:
            self.registry.unbind(self.user_id, self.channel)

        self.user_id = user.id
        self.registry.bind(user.id, self.channel)
        logger.info("user %s authenticated", user.id)
        await self._reply(AuthenticatedFrame(success=True))

    async def _on_send_message(self, frame: SendMessageFrame) -> None:
        sender_id = self.user_id
        try:
            content = InputSanitizer.sanitize_content(frame.content, max_length=settings.MAX_MESSAGE_LENGTH)
        except ValueError as e:
            await self._reply(ErrorFrame(error=str(e)))
            return

        conversation = await self._store(conversations_crud.get_by_id, frame.conversation_id)
        if conversation is not None and not conversation.has_participant(sender_id):
            logger.warning("user %s is not in conversation %s", sender_id, frame.conversation_id)
            await self._reply(ErrorFrame(error="not a participant of this conversation"))
            return

        message = await self._store(messages_crud.create_message, frame.conversation_id, sender_id, content)
        logger.info("message %s persisted in conversation %s", message.id, message.conversation_id)

        if conversation is None:
            logger.warning("conversation %s not found, message %s acknowledged without fan-out",
                           frame.conversation_id, message.id)
        else:
            message = await self._fan_out(message, conversation.counterpart_of(sender_id))

        await self._reply(MessageSentFrame(message=MessageOut.model_validate(message)))

    async def _fan_out(self, message, recipient_id: int):
        """Push a new message to the recipient if online; returns the (possibly updated) message."""
        channel = self.registry.lookup(recipient_id)
        if channel is None:
            return message

        pushed = await self._push(recipient_id, channel, NewMessageFrame(message=MessageOut.model_validate(message)))
        if not pushed:
            return message

        updated = await self._store(messages_crud.advance_status, message.id, MessageStatus.DELIVERED)
        if updated is None:
            return message

        if updated.status == MessageStatus.DELIVERED.value:
            await self._reply(MessageUpdateFrame(message_id=updated.id, status=MessageStatus.DELIVERED))
        return updated

    async def _on_read_receipt(self, frame: ReadReceiptFrame) -> None:
        reader_id = self.user_id
        for message_id in frame.message_ids:
            # one bad id must not abort the rest
            try:
                message = await self._store(messages_crud.mark_read, message_id, reader_id)
            except SQLAlchemyError:
                logger.exception("store error marking message %s read", message_id)
                continue

            if message is None:
                logger.warning("read receipt from user %s for unknown or foreign message %s", reader_id, message_id)
                continue

            channel = self.registry.lookup(message.sender_id)
            if channel is not None:
                await self._push(
                    message.sender_id,
                    channel,
                    MessageUpdateFrame(message_id=message.id, status=MessageStatus.READ),
                )

    # plumbing

    async def _store(self, fn: Callable[..., T], *args) -> T:
        """Run a crud function in a fresh session on a worker thread."""
        def call() -> T:
            with self._session_factory() as db:
                return fn(db, *args)

        return await run_in_threadpool(call)

    async def _reply(self, frame: OutboundFrame) -> None:
        try:
            await self.channel.send_text(frame.to_json())
        except TRANSPORT_ERRORS:
            logger.warning("could not reply to user %s, channel is gone", self.user_id)

    async def _push(self, user_id: int, channel: Channel, frame: OutboundFrame) -> bool:
        """Send to another user's channel; a dead channel is unbound."""
        try:
            await channel.send_text(frame.to_json())
            return True
        except TRANSPORT_ERRORS:
            logger.warning("push of %s to user %s failed, dropping stale connection", frame.type, user_id)
            self.registry.unbind(user_id, channel)
            return False
