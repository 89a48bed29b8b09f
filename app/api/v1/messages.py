# file: app/api/v1/messages.py

import logging
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_actor
from app.core.settings import settings
from app.db.session import get_db, get_session_factory
from app.schemas.actors import Actor
from app.schemas.messages import MessageCreate, MessageRead
from app.services import auto_reply_service, conversations_service, messages_service
from app.services.relay_hub import RelayHub, get_relay_hub

router = APIRouter()
logger = logging.getLogger("messages")


@router.post("", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: MessageCreate,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    hub: RelayHub = Depends(get_relay_hub),
    session_factory=Depends(get_session_factory),
):
    conv = conversations_service.get_for_actor(db, payload.conversation_id, actor)

    msg = messages_service.append_message(
        db,
        conv,
        actor,
        payload.content,
        message_type=payload.message_type.value,
        file_url=payload.file_url,
    )

    await hub.notify_new_message(conv.id, msg.id, msg.sender_id, msg.sender_type)

    if actor.role == "guest" and settings.AUTO_REPLY_ENABLED:
        background_tasks.add_task(
            auto_reply_service.send_auto_reply,
            session_factory,
            hub,
            conv.id,
            msg.content,
            settings.AUTO_REPLY_DELAY_SECONDS,
        )

    return msg


@router.get("", response_model=list[MessageRead])
def list_messages(
    conversation_id: str = Query(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    conv = conversations_service.get_for_actor(db, conversation_id, actor)
    messages = messages_service.list_by_conversation(db, conv.id)

    # Reading is what clears the caller's unread flag
    conversations_service.mark_read(db, conv, actor)
    return messages
