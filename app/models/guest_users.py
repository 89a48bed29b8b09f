from sqlalchemy import Column, String, DateTime
import uuid
from app.db.base import Base, utcnow

class GuestUser(Base):
    __tablename__ = "guest_users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone_number = Column(String, nullable=True)

    # Session-correlation token persisted by the browser widget
    session_id = Column(String, nullable=False, unique=True, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
