# file: app/services/guest_users_service.py

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import IdentityRequired, NotFound, persistence_errors
from app.core.redis import cache_delete, cache_get, cache_set
from app.core.settings import settings
from app.models.guest_users import GuestUser
from app.schemas.guest_users import GuestProfile

logger = logging.getLogger("guest_users_service")


def _cache_key(session_token: str) -> str:
    return f"guest_session:{session_token}"


def _find_by_session(db: Session, session_token: str) -> GuestUser | None:
    with persistence_errors(db, "guest lookup"):
        return (
            db.query(GuestUser)
            .filter(GuestUser.session_id == session_token)
            .first()
        )


async def get_guest_by_session(db: Session, session_token: str) -> GuestUser:
    """
    Resolves the guest for a session token.
    Redis holds token -> guest id; the database stays authoritative.
    """
    if not session_token:
        raise NotFound("guest not found")

    key = _cache_key(session_token)
    cached_id = await cache_get(key)

    if cached_id:
        with persistence_errors(db, "guest lookup"):
            guest = db.get(GuestUser, cached_id)
        if guest and guest.session_id == session_token:
            return guest
        # stale entry
        await cache_delete(key)

    guest = _find_by_session(db, session_token)
    if guest is None:
        raise NotFound("guest not found")

    await cache_set(key, guest.id, ttl_seconds=settings.GUEST_CACHE_TTL_SECONDS)
    return guest


async def resolve_or_create_guest(
    db: Session,
    session_token: str | None,
    profile: GuestProfile | None = None,
) -> GuestUser:
    """
    - Token already known -> returns the same guest (idempotent)
    - Unknown token + profile -> creates the guest
    - Unknown token, no profile -> IdentityRequired
    """
    if not session_token:
        raise IdentityRequired("guest session token is missing")

    try:
        return await get_guest_by_session(db, session_token)
    except NotFound:
        pass

    if profile is None:
        raise IdentityRequired("guest profile (name and email) is required")

    guest = GuestUser(
        name=profile.name,
        email=profile.email,
        phone_number=profile.phone_number,
        session_id=session_token,
    )

    with persistence_errors(db, "guest creation"):
        try:
            db.add(guest)
            db.commit()
        except IntegrityError:
            # Concurrent request created it first
            db.rollback()
            winner = _find_by_session(db, session_token)
            if winner is None:
                raise
            logger.info(f"[Guest] Reusing concurrently created guest id={winner.id}")
            return winner

        db.refresh(guest)

    logger.info(f"[Guest] Created guest id={guest.id}")
    await cache_set(_cache_key(session_token), guest.id, ttl_seconds=settings.GUEST_CACHE_TTL_SECONDS)
    return guest
