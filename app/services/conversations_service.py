import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import (
    AccessDenied,
    Forbidden,
    InvalidOwner,
    NotFound,
    persistence_errors,
)
from app.core.settings import settings
from app.db.base import utcnow
from app.models.conversations import Conversation, ConversationStatus
from app.models.messages import SenderType
from app.schemas.actors import Actor, OwnerRef

logger = logging.getLogger("conversations_service")

LIVECHAT_ITEM_TYPE = "livechat"
SYSTEM_SENDER_ID = "system"


# ============================================================
# Reads
# ============================================================

def get_conversation(db: Session, conversation_id: str) -> Conversation:
    with persistence_errors(db, "conversation lookup"):
        conv = db.get(Conversation, conversation_id)

    if conv is None:
        raise NotFound("conversation not found")
    return conv


def _ordered(query):
    return query.order_by(Conversation.last_message_at.desc(), Conversation.created_at.desc())


def list_for_user(db: Session, user_id: str) -> list[Conversation]:
    with persistence_errors(db, "conversation listing"):
        return _ordered(db.query(Conversation).filter(Conversation.user_id == user_id)).all()


def list_for_guest(db: Session, guest_id: str) -> list[Conversation]:
    with persistence_errors(db, "conversation listing"):
        return _ordered(db.query(Conversation).filter(Conversation.guest_user_id == guest_id)).all()


def list_open_for_admin(db: Session) -> list[Conversation]:
    """Everything not closed (open + pending)."""
    with persistence_errors(db, "conversation listing"):
        return _ordered(
            db.query(Conversation).filter(Conversation.status != ConversationStatus.CLOSED.value)
        ).all()


def list_for_actor(db: Session, actor: Actor) -> list[Conversation]:
    if actor.is_admin:
        return list_open_for_admin(db)
    if actor.role == "user":
        return list_for_user(db, actor.id)
    return list_for_guest(db, actor.id)


# ============================================================
# Authorization
# ============================================================

def ensure_access(conv: Conversation, actor: Actor) -> Conversation:
    """
    Admin -> any conversation
    User  -> only conversations they own
    Guest -> only conversations owned by the guest resolved from their token
    Existing but not theirs -> AccessDenied (never NotFound)
    """
    if actor.is_admin:
        return conv

    if actor.role == "user" and conv.user_id == actor.id:
        return conv

    if actor.role == "guest" and conv.guest_user_id == actor.id:
        return conv

    logger.info(
        f"[Conversation] Access denied conversation_id={conv.id} role={actor.role} actor_id={actor.id}"
    )
    raise AccessDenied("conversation belongs to someone else")


def get_for_actor(db: Session, conversation_id: str, actor: Actor) -> Conversation:
    return ensure_access(get_conversation(db, conversation_id), actor)


# ============================================================
# Unread bookkeeping
# ============================================================

def touch(conv: Conversation, sender_type: str, at=None):
    """
    Called on every append (no commit here, the caller owns the transaction).
    Flags are overwritten from the sender type, never derived from prior state.
    """
    from_admin = sender_type == SenderType.ADMIN.value

    conv.last_message_at = at or utcnow()
    conv.updated_at = conv.last_message_at
    conv.read_by_user = not from_admin
    conv.read_by_admin = from_admin

    if conv.status == ConversationStatus.PENDING.value:
        conv.status = ConversationStatus.OPEN.value


def mark_read(db: Session, conv: Conversation, actor: Actor) -> Conversation:
    if actor.is_admin:
        field = Conversation.read_by_admin
    else:
        field = Conversation.read_by_user

    with persistence_errors(db, "mark read"):
        # Single-column update, concurrent appends keep their flags
        db.query(Conversation).filter(Conversation.id == conv.id).update(
            {field: True}, synchronize_session=False
        )
        db.commit()
        db.refresh(conv)
    return conv


def count_unread_for_admin(db: Session) -> int:
    with persistence_errors(db, "unread count"):
        return (
            db.query(func.count(Conversation.id))
            .filter(
                Conversation.read_by_admin.is_(False),
                Conversation.status != ConversationStatus.CLOSED.value,
            )
            .scalar()
        )


def count_unread_for_user(db: Session, user_id: str) -> int:
    """Conversations with a reply the user has not read yet."""
    with persistence_errors(db, "unread count"):
        return (
            db.query(func.count(Conversation.id))
            .filter(Conversation.user_id == user_id, Conversation.read_by_user.is_(False))
            .scalar()
        )


def count_unread_for_guest(db: Session, guest_id: str) -> int:
    with persistence_errors(db, "unread count"):
        return (
            db.query(func.count(Conversation.id))
            .filter(Conversation.guest_user_id == guest_id, Conversation.read_by_user.is_(False))
            .scalar()
        )


def count_unread_for_actor(db: Session, actor: Actor) -> int:
    if actor.is_admin:
        return count_unread_for_admin(db)
    if actor.role == "user":
        return count_unread_for_user(db, actor.id)
    return count_unread_for_guest(db, actor.id)


def count_open(db: Session) -> int:
    with persistence_errors(db, "open count"):
        return (
            db.query(func.count(Conversation.id))
            .filter(Conversation.status != ConversationStatus.CLOSED.value)
            .scalar()
        )


# ============================================================
# Writes
# ============================================================

def _validate_owner(owner: OwnerRef):
    if bool(owner.user_id) == bool(owner.guest_user_id):
        raise InvalidOwner("conversation needs exactly one owner: a user or a guest")


def owner_for(actor: Actor) -> OwnerRef:
    if actor.role == "guest":
        return OwnerRef(guest_user_id=actor.id)
    return OwnerRef(user_id=actor.id)


def create_conversation(
    db: Session,
    owner: OwnerRef,
    subject: str = "General Inquiry",
    initial_message: str | None = None,
    sender: Actor | None = None,
    item_type: str = "inquiry",
    item_id: str | None = None,
):
    """
    Creates the conversation and, in the same transaction, its first
    message and the livechat welcome message.
    Returns (conversation, created_messages).
    """
    from app.services import messages_service

    _validate_owner(owner)
    if initial_message is not None:
        initial_message = messages_service.validate_content(initial_message)

    conv = Conversation(
        user_id=owner.user_id,
        guest_user_id=owner.guest_user_id,
        subject=subject or "General Inquiry",
        item_type=item_type or "inquiry",
        item_id=item_id,
        status=ConversationStatus.OPEN.value,
    )

    created = []

    with persistence_errors(db, "conversation creation"):
        db.add(conv)
        db.flush()

        if owner.guest_user_id and conv.item_type == LIVECHAT_ITEM_TYPE and settings.WELCOME_MESSAGE:
            created.append(
                messages_service.stage_message(
                    db,
                    conv,
                    sender_id=SYSTEM_SENDER_ID,
                    sender_type=SenderType.SYSTEM.value,
                    content=settings.WELCOME_MESSAGE,
                )
            )

        if initial_message is not None:
            if sender is None:
                sender = Actor(
                    role="guest" if owner.guest_user_id else "user",
                    id=owner.guest_user_id or owner.user_id,
                )
            created.append(
                messages_service.stage_message(
                    db,
                    conv,
                    sender_id=sender.id,
                    sender_type=sender.role,
                    content=initial_message,
                )
            )

        db.commit()
        db.refresh(conv)
        for msg in created:
            db.refresh(msg)

    logger.info(
        f"[Conversation] Created conversation_id={conv.id} user_id={conv.user_id} "
        f"guest_user_id={conv.guest_user_id} messages={len(created)}"
    )
    return conv, created


def close_conversation(db: Session, conversation_id: str, actor: Actor) -> Conversation:
    conv = get_conversation(db, conversation_id)

    if not actor.is_admin and not (actor.role == "user" and conv.user_id == actor.id):
        raise Forbidden("only an admin or the owning user can close a conversation")

    if conv.status == ConversationStatus.CLOSED.value:
        return conv

    with persistence_errors(db, "conversation close"):
        conv.status = ConversationStatus.CLOSED.value
        conv.updated_at = utcnow()
        db.commit()
        db.refresh(conv)

    logger.info(f"[Conversation] Closed conversation_id={conv.id} by role={actor.role}")
    return conv
