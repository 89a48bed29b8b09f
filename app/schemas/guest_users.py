from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator


class GuestProfile(BaseModel):
    name: str
    email: EmailStr
    phone_number: str | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name is required")
        return value


class GuestUserRead(BaseModel):
    id: str
    name: str
    email: str
    phone_number: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
