import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from app.core.errors import ConversationClosed, InvalidContent, persistence_errors
from app.db.base import utcnow
from app.models.conversations import Conversation, ConversationStatus
from app.models.messages import Message, MessageType, SenderType
from app.schemas.actors import Actor
from app.services.conversations_service import SYSTEM_SENDER_ID, touch

logger = logging.getLogger("messages_service")


def validate_content(content: str | None) -> str:
    if content is None or not content.strip():
        raise InvalidContent("message content is empty")
    return content.strip()


def stage_message(
    db: Session,
    conv: Conversation,
    *,
    sender_id: str,
    sender_type: str,
    content: str,
    message_type: str = MessageType.TEXT.value,
    file_url: str | None = None,
) -> Message:
    """
    Adds the message and updates the conversation in the current
    transaction without committing.
    """
    content = validate_content(content)

    if message_type == MessageType.FILE.value and not file_url:
        raise InvalidContent("file messages need a file_url")

    now = utcnow()
    # Strictly after the previous message so ordering never ties within a conversation
    if conv.last_message_at is not None and now <= conv.last_message_at:
        now = conv.last_message_at + timedelta(microseconds=1)

    msg = Message(
        conversation_id=conv.id,
        sender_id=sender_id,
        sender_type=sender_type,
        content=content,
        message_type=message_type,
        file_url=file_url,
        created_at=now,
    )
    db.add(msg)
    touch(conv, sender_type, at=now)
    return msg


def append_message(
    db: Session,
    conv: Conversation,
    sender: Actor,
    content: str,
    message_type: str = MessageType.TEXT.value,
    file_url: str | None = None,
) -> Message:
    """
    Message row + conversation update are committed together.
    """
    return _commit_message(db, conv, sender.id, sender.role, content, message_type, file_url)


def append_system_message(db: Session, conv: Conversation, content: str) -> Message:
    return _commit_message(db, conv, SYSTEM_SENDER_ID, SenderType.SYSTEM.value, content)


def _commit_message(
    db: Session,
    conv: Conversation,
    sender_id: str,
    sender_type: str,
    content: str,
    message_type: str = MessageType.TEXT.value,
    file_url: str | None = None,
) -> Message:
    if conv.status == ConversationStatus.CLOSED.value:
        raise ConversationClosed("conversation is closed")

    with persistence_errors(db, "message append"):
        msg = stage_message(
            db,
            conv,
            sender_id=sender_id,
            sender_type=sender_type,
            content=content,
            message_type=message_type,
            file_url=file_url,
        )
        db.commit()
        db.refresh(msg)

    logger.info(
        f"[Message] Appended message_id={msg.id} conversation_id={conv.id} sender_type={msg.sender_type}"
    )
    return msg


def list_by_conversation(db: Session, conversation_id: str) -> list[Message]:
    # No pagination: full history, oldest first
    with persistence_errors(db, "message listing"):
        return (
            db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
            .all()
        )


def count_by_conversation(db: Session, conversation_id: str) -> int:
    with persistence_errors(db, "message count"):
        return db.query(Message).filter(Message.conversation_id == conversation_id).count()
