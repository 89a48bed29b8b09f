# file: app/api/v1/admin.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import require_admin
from app.db.session import get_db
from app.schemas.actors import Actor
from app.schemas.conversations import ChatStats
from app.services import conversations_service

router = APIRouter()


@router.get("/chat-stats", response_model=ChatStats)
def chat_stats(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ChatStats(
        unread_conversations=conversations_service.count_unread_for_admin(db),
        open_conversations=conversations_service.count_open(db),
    )
