import enum
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from app.db.base import Base, utcnow


class SenderType(str, enum.Enum):
    USER = "user"
    GUEST = "guest"
    ADMIN = "admin"
    SYSTEM = "system"  # automatic welcome message


class MessageType(str, enum.Enum):
    TEXT = "text"
    FILE = "file"


class Message(Base):
    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    conversation_id = Column(String, ForeignKey("conversations.id"), nullable=False, index=True)

    sender_id = Column(String, nullable=False)
    sender_type = Column(String, nullable=False)   # user/guest/admin/system
    content = Column(Text, nullable=False)
    message_type = Column(String, nullable=False, default=MessageType.TEXT.value)
    file_url = Column(String, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
