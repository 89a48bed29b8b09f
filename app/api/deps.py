# file: app/api/deps.py

from dataclasses import dataclass

from fastapi import Depends
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from app.core.errors import AccessDenied, IdentityRequired, NotFound
from app.db.session import get_db
from app.schemas.actors import Actor
from app.services.guest_users_service import get_guest_by_session

# Set by the storefront's auth layer in front of this service
user_id_header = APIKeyHeader(name="X-User-Id", auto_error=False)
user_role_header = APIKeyHeader(name="X-User-Role", auto_error=False)

# Session-correlation token persisted by the widget
guest_session_header = APIKeyHeader(name="X-Guest-Session", auto_error=False)


@dataclass
class Caller:
    user_id: str | None = None
    user_role: str | None = None
    guest_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    def user_actor(self) -> Actor:
        return Actor(role="admin" if self.user_role == "admin" else "user", id=self.user_id)


def get_caller(
    user_id: str | None = Depends(user_id_header),
    user_role: str | None = Depends(user_role_header),
    guest_token: str | None = Depends(guest_session_header),
) -> Caller:
    return Caller(user_id=user_id or None, user_role=user_role, guest_token=guest_token or None)


async def get_actor(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)) -> Actor:
    if caller.is_authenticated:
        return caller.user_actor()

    if not caller.guest_token:
        raise IdentityRequired("sign in or provide a guest session")

    try:
        guest = await get_guest_by_session(db, caller.guest_token)
    except NotFound:
        raise IdentityRequired("unknown guest session")

    return Actor(role="guest", id=guest.id)


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_admin:
        raise AccessDenied("admin access required")
    return actor
