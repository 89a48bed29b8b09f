"""Relay event envelopes: {"type": ..., "data": {...}}."""
from datetime import datetime
from typing import Annotated, Literal, NamedTuple, Union

from pydantic import BaseModel, Field, TypeAdapter


class Participant(NamedTuple):
    participant_id: str
    participant_type: str


# ===========================================
# Payloads
# ===========================================

class RoomRef(BaseModel):
    conversation_id: str


class TypingData(BaseModel):
    conversation_id: str
    participant_id: str
    participant_type: Literal["user", "guest", "admin"]


class MessageRef(BaseModel):
    """Ids only: receivers re-fetch the message log for content."""
    conversation_id: str
    message_id: str
    sender_id: str
    sender_type: str


class TypingState(TypingData):
    is_typing: bool


class ConversationRef(BaseModel):
    conversation_id: str
    subject: str
    created_at: datetime


class ErrorData(BaseModel):
    detail: str


# ===========================================
# Client -> Server
# ===========================================

class JoinRoom(BaseModel):
    type: Literal["join-conversation"] = "join-conversation"
    data: RoomRef


class LeaveRoom(BaseModel):
    type: Literal["leave-conversation"] = "leave-conversation"
    data: RoomRef


class TypingStart(BaseModel):
    type: Literal["typing-start"] = "typing-start"
    data: TypingData


class TypingStop(BaseModel):
    type: Literal["typing-stop"] = "typing-stop"
    data: TypingData


class NewMessage(BaseModel):
    type: Literal["new-message"] = "new-message"
    data: MessageRef


InboundEvent = Annotated[
    Union[JoinRoom, LeaveRoom, TypingStart, TypingStop, NewMessage],
    Field(discriminator="type"),
]

inbound_adapter = TypeAdapter(InboundEvent)


# ===========================================
# Server -> Client
# ===========================================

class UserTyping(BaseModel):
    type: Literal["user-typing"] = "user-typing"
    data: TypingState


class MessageReceived(BaseModel):
    type: Literal["message-received"] = "message-received"
    data: MessageRef


class NewConversation(BaseModel):
    type: Literal["new-conversation"] = "new-conversation"
    data: ConversationRef


class RelayError(BaseModel):
    type: Literal["error"] = "error"
    data: ErrorData


OutboundEvent = Annotated[
    Union[UserTyping, MessageReceived, NewConversation, RelayError],
    Field(discriminator="type"),
]

outbound_adapter = TypeAdapter(OutboundEvent)
