# file: app/services/auto_reply_service.py

import asyncio
import logging

from app.core.errors import ChatError
from app.services import messages_service
from app.services.conversations_service import get_conversation

logger = logging.getLogger("auto_reply_service")

# ============================================================
# 💬 Canned replies
# ============================================================

FIRST_CONTACT_REPLY = (
    "Thank you for contacting us! Please hold while we connect you with a "
    "travel specialist. One of our agents will be with you shortly."
)

DEFAULT_REPLY = (
    "Thank you for your message. Our team is reviewing your inquiry and will "
    "respond shortly. We appreciate your patience."
)

# First match wins
KEYWORD_REPLIES = [
    (
        ("book", "reservation"),
        "Thanks for your interest in booking with us! Our agents are currently assisting "
        "other customers. Please hold and an agent will help you complete your reservation shortly.",
    ),
    (
        ("cancel", "refund"),
        "I understand you have a question about cancellations or refunds. Our customer "
        "service team will be with you shortly to address your concerns.",
    ),
    (
        ("price", "cost", "discount"),
        "Thank you for your inquiry about pricing. Our travel specialists will be with you "
        "shortly with detailed pricing information and any available discounts.",
    ),
    (
        ("package", "tour"),
        "Thank you for your interest in our travel packages! Our team will be with you "
        "shortly to help you find the perfect tour package.",
    ),
    (
        ("hotel", "accommodation", "room"),
        "Thank you for your interest in our hotel accommodations! Our hotel specialists "
        "will be with you shortly to help you find the perfect stay.",
    ),
    (
        ("cruise", "ship", "cabin"),
        "Thank you for your interest in our cruise offerings! Our cruise specialists will "
        "be with you shortly to help you find the perfect voyage.",
    ),
    (
        ("payment", "pay", "card"),
        "Thank you for your inquiry about payment options. Our payment specialists will "
        "be with you shortly to assist with your transaction.",
    ),
    (
        ("itinerary", "schedule", "plan"),
        "Thank you for your inquiry about travel itineraries. Our travel planners will be "
        "with you shortly to help you plan your perfect trip.",
    ),
]


def pick_auto_reply(content: str, message_count: int) -> str:
    """
    message_count includes the guest message being answered:
    the first exchange gets the first-contact reply, later ones a
    keyword-based reply.
    """
    if message_count <= 2:
        return FIRST_CONTACT_REPLY

    text = content.lower()
    for keywords, reply in KEYWORD_REPLIES:
        if any(k in text for k in keywords):
            return reply
    return DEFAULT_REPLY


# ============================================================
# ⏱️ Delayed send (runs as a background task)
# ============================================================

async def send_auto_reply(session_factory, hub, conversation_id: str, content: str, delay_seconds: float = 0):
    """
    Appends a system reply after a delay and announces it on the relay.
    A system message leaves the conversation unread for admins.
    """
    if delay_seconds:
        await asyncio.sleep(delay_seconds)

    db = session_factory()
    try:
        conv = get_conversation(db, conversation_id)
        count = messages_service.count_by_conversation(db, conv.id)
        msg = messages_service.append_system_message(db, conv, pick_auto_reply(content, count))
    except ChatError as e:
        # Closed or gone in the meantime, or the store failed
        logger.warning(f"[AutoReply] Skipped conversation_id={conversation_id}: {e.code}")
        return
    finally:
        db.close()

    logger.info(f"[AutoReply] Sent message_id={msg.id} conversation_id={conversation_id}")
    await hub.notify_new_message(conversation_id, msg.id, msg.sender_id, msg.sender_type)
