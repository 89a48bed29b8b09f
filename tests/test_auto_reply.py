import pytest

from app.core.settings import settings
from app.models.conversations import Conversation
from app.models.messages import Message
from app.schemas.actors import Actor, OwnerRef
from app.services import auto_reply_service
from app.services.auto_reply_service import DEFAULT_REPLY, FIRST_CONTACT_REPLY, pick_auto_reply, send_auto_reply
from app.services.conversations_service import close_conversation, create_conversation
from app.services.relay_hub import RelayHub
from tests.conftest import ADMIN, guest_headers

GUEST_PROFILE = {"name": "Ana Souza", "email": "ana@example.com"}


class RecordingConnection:
    def __init__(self):
        self.sent = []

    async def send_json(self, payload):
        self.sent.append(payload)


# ============================================================
# Reply selection
# ============================================================

def test_first_exchange_gets_first_contact_reply():
    assert pick_auto_reply("I want a refund", 1) == FIRST_CONTACT_REPLY
    assert pick_auto_reply("I want a refund", 2) == FIRST_CONTACT_REPLY


@pytest.mark.parametrize(
    "content, keyword",
    [
        ("Can I BOOK the Bali trip?", "book"),
        ("Need a refund please", "refund"),
        ("What does it cost?", "cost"),
        ("Any tour in Kerala?", "tour"),
        ("Is the hotel near the beach?", "hotel"),
        ("Which cruise cabins are left?", "cruise"),
        ("Can I pay by card?", "pay"),
        ("Help me plan my itinerary", "itinerary"),
    ],
)
def test_keyword_replies(content, keyword):
    reply = pick_auto_reply(content, 5)

    expected = next(r for keywords, r in auto_reply_service.KEYWORD_REPLIES if keyword in keywords)
    assert reply == expected


def test_unmatched_message_gets_default_reply():
    assert pick_auto_reply("hello there", 5) == DEFAULT_REPLY


# ============================================================
# Delayed send
# ============================================================

async def test_auto_reply_leaves_conversation_unread_for_admin(db, session_factory):
    conv, _ = create_conversation(db, OwnerRef(user_id="u1"), initial_message="Is the cruise refundable?")
    conv.read_by_admin = True
    db.commit()

    hub = RelayHub()
    peer = RecordingConnection()
    hub.connect(peer)
    await hub.join_room(peer, conv.id)

    await send_auto_reply(session_factory, hub, conv.id, "Is the cruise refundable?")

    db.expire_all()
    stored = db.get(Conversation, conv.id)
    assert stored.read_by_admin is False
    assert stored.read_by_user is True

    last = db.query(Message).filter(Message.conversation_id == conv.id).order_by(Message.created_at.desc()).first()
    assert last.sender_type == "system"
    assert last.content == FIRST_CONTACT_REPLY
    assert peer.sent[-1]["type"] == "message-received"
    assert peer.sent[-1]["data"]["message_id"] == last.id


async def test_auto_reply_skips_closed_conversation(db, session_factory):
    conv, _ = create_conversation(db, OwnerRef(user_id="u1"), initial_message="hi")
    close_conversation(db, conv.id, Actor(role="admin", id="admin-1"))

    await send_auto_reply(session_factory, RelayHub(), conv.id, "hi")

    assert db.query(Message).filter(Message.conversation_id == conv.id).count() == 1


async def test_auto_reply_for_missing_conversation_is_skipped(session_factory):
    await send_auto_reply(session_factory, RelayHub(), "gone", "hi")


# ============================================================
# HTTP
# ============================================================

def _guest_conversation(client):
    return client.post(
        "/v1/conversations",
        json={"message": "Hello", "guest": GUEST_PROFILE},
        headers=guest_headers("tok-ana"),
    ).json()


def test_guest_message_gets_system_reply(client):
    conv = _guest_conversation(client)
    client.get("/v1/messages", params={"conversation_id": conv["id"]}, headers=ADMIN)

    sent = client.post(
        "/v1/messages",
        json={"conversation_id": conv["id"], "content": "Do you have hotel deals?"},
        headers=guest_headers("tok-ana"),
    )
    assert sent.status_code == 201

    messages = client.get("/v1/messages", params={"conversation_id": conv["id"]}, headers=guest_headers("tok-ana")).json()
    assert [m["sender_type"] for m in messages] == ["guest", "guest", "system"]

    stored = client.get(f"/v1/conversations/{conv['id']}", headers=guest_headers("tok-ana")).json()
    assert stored["read_by_admin"] is False


def test_admin_message_gets_no_auto_reply(client):
    conv = _guest_conversation(client)

    client.post("/v1/messages", json={"conversation_id": conv["id"], "content": "Hi!"}, headers=ADMIN)

    messages = client.get("/v1/messages", params={"conversation_id": conv["id"]}, headers=ADMIN).json()
    assert [m["sender_type"] for m in messages] == ["guest", "admin"]


def test_auto_reply_can_be_disabled(client, monkeypatch):
    monkeypatch.setattr(settings, "AUTO_REPLY_ENABLED", False)
    conv = _guest_conversation(client)

    client.post(
        "/v1/messages",
        json={"conversation_id": conv["id"], "content": "booking?"},
        headers=guest_headers("tok-ana"),
    )

    messages = client.get("/v1/messages", params={"conversation_id": conv["id"]}, headers=ADMIN).json()
    assert [m["sender_type"] for m in messages] == ["guest", "guest"]
