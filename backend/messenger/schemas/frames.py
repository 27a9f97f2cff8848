"""
Channel frames.

Inbound frames form a tagged union on ``type``; ``parse_inbound`` returns
one of the variant classes and the protocol handler matches on them.
Outbound frames are serialized with camelCase field names.
"""
from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union

from pydantic import ConfigDict, Field, TypeAdapter

from messenger.realtime.delivery import MessageStatus
from messenger.schemas.base import CamelModel
from messenger.schemas.message import MessageOut


# Row ids; anything outside a signed 64-bit integer can never name a row.
RowId = Annotated[int, Field(ge=1, le=2**63 - 1)]


class _InboundFrame(CamelModel):
    model_config = ConfigDict(extra='ignore')


class AuthenticateFrame(_InboundFrame):
    type: Literal["authenticate"]
    user_id: RowId


class SendMessageFrame(_InboundFrame):
    type: Literal["message"]
    conversation_id: RowId
    content: str


class ReadReceiptFrame(_InboundFrame):
    type: Literal["read_receipt"]
    message_ids: List[RowId] = Field(min_length=1, max_length=500)


InboundFrame = Annotated[
    Union[AuthenticateFrame, SendMessageFrame, ReadReceiptFrame],
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(InboundFrame)


def parse_inbound(raw: str | bytes) -> AuthenticateFrame | SendMessageFrame | ReadReceiptFrame:
    """Decode one inbound frame. Raises ``pydantic.ValidationError`` on bad input."""
    return _inbound_adapter.validate_json(raw)


class OutboundFrame(CamelModel):
    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class AuthenticatedFrame(OutboundFrame):
    type: Literal["authenticated"] = "authenticated"
    success: bool
    error: Optional[str] = None


class NewMessageFrame(OutboundFrame):
    type: Literal["new_message"] = "new_message"
    message: MessageOut


class MessageSentFrame(OutboundFrame):
    type: Literal["message_sent"] = "message_sent"
    message: MessageOut


class MessageUpdateFrame(OutboundFrame):
    type: Literal["message_update"] = "message_update"
    message_id: int
    status: MessageStatus


class ErrorFrame(OutboundFrame):
    type: Literal["error"] = "error"
    error: str
