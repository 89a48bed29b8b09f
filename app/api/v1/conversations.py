# file: app/api/v1/conversations.py

import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import Caller, get_actor, get_caller
from app.db.session import get_db
from app.schemas.actors import Actor, OwnerRef
from app.schemas.conversations import ConversationCreate, ConversationRead, UnreadCount
from app.services import conversations_service
from app.services.guest_users_service import resolve_or_create_guest
from app.services.relay_hub import RelayHub, get_relay_hub

router = APIRouter()
logger = logging.getLogger("conversations")


@router.post("", response_model=ConversationRead, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    payload: ConversationCreate,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
    hub: RelayHub = Depends(get_relay_hub),
):
    if caller.is_authenticated:
        actor = caller.user_actor()
        owner = OwnerRef(user_id=actor.id)
    else:
        guest = await resolve_or_create_guest(db, caller.guest_token, payload.guest)
        actor = Actor(role="guest", id=guest.id)
        owner = OwnerRef(guest_user_id=guest.id)

    conv, created = conversations_service.create_conversation(
        db,
        owner,
        subject=payload.subject,
        initial_message=payload.message,
        sender=actor,
        item_type=payload.item_type,
        item_id=payload.item_id,
    )

    await hub.announce_conversation(conv.id, conv.subject, conv.created_at)
    for msg in created:
        await hub.notify_new_message(conv.id, msg.id, msg.sender_id, msg.sender_type)

    return conv


@router.get("", response_model=list[ConversationRead])
def list_conversations(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return conversations_service.list_for_actor(db, actor)


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return UnreadCount(unread_conversations=conversations_service.count_unread_for_actor(db, actor))


@router.get("/{conversation_id}", response_model=ConversationRead)
def get_conversation(
    conversation_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return conversations_service.get_for_actor(db, conversation_id, actor)


@router.put("/{conversation_id}/close", response_model=ConversationRead)
def close_conversation(
    conversation_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return conversations_service.close_conversation(db, conversation_id, actor)
