from datetime import datetime

from pydantic import BaseModel, ConfigDict

from app.schemas.guest_users import GuestProfile


class ConversationCreate(BaseModel):
    subject: str = "General Inquiry"
    item_type: str = "inquiry"
    item_id: str | None = None
    message: str | None = None

    # Guests without a resolved identity send their profile along
    guest: GuestProfile | None = None


class ConversationRead(BaseModel):
    id: str
    user_id: str | None = None
    guest_user_id: str | None = None
    subject: str
    item_type: str
    item_id: str | None = None
    status: str
    last_message_at: datetime
    read_by_user: bool
    read_by_admin: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCount(BaseModel):
    unread_conversations: int


class ChatStats(BaseModel):
    unread_conversations: int
    open_conversations: int
