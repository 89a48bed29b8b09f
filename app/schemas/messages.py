from datetime import datetime

from pydantic import BaseModel, ConfigDict

from app.models.messages import MessageType


class MessageCreate(BaseModel):
    conversation_id: str
    content: str
    message_type: MessageType = MessageType.TEXT
    file_url: str | None = None


class MessageRead(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    sender_type: str
    content: str
    message_type: str
    file_url: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
