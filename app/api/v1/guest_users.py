# file: app/api/v1/guest_users.py

import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import Caller, get_caller
from app.core.errors import IdentityRequired, NotFound
from app.db.session import get_db
from app.schemas.guest_users import GuestProfile, GuestUserRead
from app.services.guest_users_service import get_guest_by_session, resolve_or_create_guest

router = APIRouter()
logger = logging.getLogger("guest_users")


@router.post("", response_model=GuestUserRead, status_code=status.HTTP_201_CREATED)
async def create_guest_user(
    profile: GuestProfile,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    logger.info("[Guest] Resolve-or-create request")
    return await resolve_or_create_guest(db, caller.guest_token, profile)


@router.get("/me", response_model=GuestUserRead)
async def get_current_guest(
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    if not caller.guest_token:
        raise IdentityRequired("guest session token is missing")
    try:
        return await get_guest_by_session(db, caller.guest_token)
    except NotFound:
        raise IdentityRequired("unknown guest session")
