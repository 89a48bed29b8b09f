from typing import Literal

from pydantic import BaseModel


class Actor(BaseModel):
    """Resolved caller of a conversation operation."""
    role: Literal["admin", "user", "guest"]
    id: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class OwnerRef(BaseModel):
    user_id: str | None = None
    guest_user_id: str | None = None
