from fastapi import APIRouter

# Guest identity
from .guest_users import router as guest_users_router

# Conversations & messages
from .conversations import router as conversations_router
from .messages import router as messages_router

# Back-office
from .admin import router as admin_router

# Relay (WebSocket)
from .relay import router as relay_router

api_router = APIRouter()

# ========== Guest identity ======================
api_router.include_router(guest_users_router, prefix="/guest-users", tags=["guest_users"])

# ========== Conversations =======================
api_router.include_router(conversations_router, prefix="/conversations", tags=["conversations"])
api_router.include_router(messages_router, prefix="/messages", tags=["messages"])

# ========== Admin ===============================
api_router.include_router(admin_router, prefix="/admin", tags=["admin"])

# ========== Relay ===============================
api_router.include_router(relay_router, tags=["relay"])
