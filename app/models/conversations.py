import enum
import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, String
from app.db.base import Base, utcnow


class ConversationStatus(str, enum.Enum):
    OPEN = "open"
    PENDING = "pending"
    CLOSED = "closed"


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        # exactly one owner: user xor guest
        CheckConstraint(
            "(user_id IS NULL) <> (guest_user_id IS NULL)",
            name="ck_conversations_single_owner",
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    # Users live in the storefront's auth system, no FK here
    user_id = Column(String, nullable=True, index=True)
    guest_user_id = Column(String, ForeignKey("guest_users.id"), nullable=True, index=True)

    subject = Column(String, nullable=False, default="General Inquiry")
    item_type = Column(String, nullable=False, default="inquiry")  # inquiry/livechat/hotel/package...
    item_id = Column(String, nullable=True)

    status = Column(String, nullable=False, default=ConversationStatus.OPEN.value)  # open/pending/closed

    last_message_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    read_by_user = Column(Boolean, nullable=False, default=True)
    read_by_admin = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
