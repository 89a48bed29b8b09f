# Imports every model so Base.metadata knows all tables (Alembic, create_all)
from app.models.guest_users import GuestUser  # noqa: F401
from app.models.conversations import Conversation  # noqa: F401
from app.models.messages import Message  # noqa: F401
