from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.errors import AccessDenied, Forbidden, InvalidContent, InvalidOwner, NotFound
from app.core.settings import settings
from app.models.conversations import Conversation, ConversationStatus
from app.models.messages import Message
from app.schemas.actors import Actor, OwnerRef
from app.services import conversations_service
from app.services.conversations_service import (
    close_conversation,
    create_conversation,
    ensure_access,
    get_conversation,
    touch,
)

ADMIN = Actor(role="admin", id="admin-1")
ALICE = Actor(role="user", id="user-alice")
BOB = Actor(role="user", id="user-bob")


def _guest(guest_id="guest-1"):
    return Actor(role="guest", id=guest_id)


@pytest.fixture
def guest_row(db):
    from app.models.guest_users import GuestUser

    guest = GuestUser(id="guest-1", name="Ana", email="ana@example.com", session_id="token-1")
    other = GuestUser(id="guest-2", name="Rui", email="rui@example.com", session_id="token-2")
    db.add_all([guest, other])
    db.commit()
    return guest


# ============================================================
# Ownership
# ============================================================

@pytest.mark.parametrize(
    "owner",
    [OwnerRef(), OwnerRef(user_id="u1", guest_user_id="g1")],
    ids=["neither", "both"],
)
def test_create_rejects_invalid_owner(db, owner):
    with pytest.raises(InvalidOwner):
        create_conversation(db, owner, subject="Hi")

    assert db.query(Conversation).count() == 0


def test_check_constraint_rejects_two_owners(db, guest_row):
    db.add(Conversation(user_id="u1", guest_user_id=guest_row.id))

    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_create_for_user_without_message(db):
    conv, created = create_conversation(db, OwnerRef(user_id=ALICE.id), subject="Cruise dates")

    assert created == []
    assert conv.status == ConversationStatus.OPEN.value
    assert conv.user_id == ALICE.id
    assert conv.guest_user_id is None
    assert conv.subject == "Cruise dates"


def test_create_with_initial_message_marks_admin_unread(db):
    conv, created = create_conversation(
        db, OwnerRef(user_id=ALICE.id), subject="Hotel", initial_message="  Is breakfast included?  "
    )

    assert len(created) == 1
    assert created[0].content == "Is breakfast included?"
    assert created[0].sender_type == "user"
    assert created[0].sender_id == ALICE.id
    assert conv.read_by_admin is False
    assert conv.read_by_user is True


def test_create_with_blank_message_persists_nothing(db):
    with pytest.raises(InvalidContent):
        create_conversation(db, OwnerRef(user_id=ALICE.id), initial_message="   ")

    assert db.query(Conversation).count() == 0


def test_livechat_guest_conversation_gets_welcome_message(db, guest_row):
    conv, created = create_conversation(
        db,
        OwnerRef(guest_user_id=guest_row.id),
        initial_message="Hello",
        item_type="livechat",
    )

    assert [m.sender_type for m in created] == ["system", "guest"]
    assert created[0].content == settings.WELCOME_MESSAGE
    assert db.query(Message).filter(Message.conversation_id == conv.id).count() == 2


def test_welcome_message_can_be_disabled(db, guest_row, monkeypatch):
    monkeypatch.setattr(settings, "WELCOME_MESSAGE", "")

    _, created = create_conversation(db, OwnerRef(guest_user_id=guest_row.id), item_type="livechat")

    assert created == []


def test_user_livechat_has_no_welcome_message(db):
    _, created = create_conversation(db, OwnerRef(user_id=ALICE.id), item_type="livechat")

    assert created == []


# ============================================================
# Access
# ============================================================

def test_get_missing_conversation_is_not_found(db):
    with pytest.raises(NotFound):
        get_conversation(db, "nope")


def test_access_rules(db, guest_row):
    alice_conv, _ = create_conversation(db, OwnerRef(user_id=ALICE.id))
    guest_conv, _ = create_conversation(db, OwnerRef(guest_user_id="guest-1"))

    assert ensure_access(alice_conv, ADMIN) is alice_conv
    assert ensure_access(guest_conv, ADMIN) is guest_conv
    assert ensure_access(alice_conv, ALICE) is alice_conv
    assert ensure_access(guest_conv, _guest("guest-1")) is guest_conv

    for conv, actor in [
        (alice_conv, BOB),
        (alice_conv, _guest("guest-1")),
        (guest_conv, _guest("guest-2")),
        (guest_conv, ALICE),
    ]:
        with pytest.raises(AccessDenied):
            ensure_access(conv, actor)


def test_get_for_actor_distinguishes_missing_from_foreign(db):
    conv, _ = create_conversation(db, OwnerRef(user_id=ALICE.id))

    with pytest.raises(AccessDenied):
        conversations_service.get_for_actor(db, conv.id, BOB)
    with pytest.raises(NotFound):
        conversations_service.get_for_actor(db, "missing", BOB)


# ============================================================
# Listing
# ============================================================

def test_lists_are_ordered_by_last_activity(db, guest_row):
    older, _ = create_conversation(db, OwnerRef(user_id=ALICE.id), subject="older")
    newer, _ = create_conversation(db, OwnerRef(user_id=ALICE.id), subject="newer")
    guest_conv, _ = create_conversation(db, OwnerRef(guest_user_id="guest-1"), subject="guest")

    older.last_message_at = newer.last_message_at + timedelta(minutes=5)
    db.commit()

    assert [c.subject for c in conversations_service.list_for_user(db, ALICE.id)] == ["older", "newer"]
    assert [c.id for c in conversations_service.list_for_guest(db, "guest-1")] == [guest_conv.id]
    assert conversations_service.list_for_user(db, BOB.id) == []


def test_admin_list_excludes_closed(db):
    open_conv, _ = create_conversation(db, OwnerRef(user_id=ALICE.id))
    pending_conv, _ = create_conversation(db, OwnerRef(user_id=BOB.id))
    closed_conv, _ = create_conversation(db, OwnerRef(user_id=BOB.id))

    pending_conv.status = ConversationStatus.PENDING.value
    db.commit()
    close_conversation(db, closed_conv.id, ADMIN)

    ids = {c.id for c in conversations_service.list_open_for_admin(db)}
    assert ids == {open_conv.id, pending_conv.id}
    assert {c.id for c in conversations_service.list_for_actor(db, ADMIN)} == ids


# ============================================================
# Close
# ============================================================

def test_admin_can_close_any_conversation(db):
    conv, _ = create_conversation(db, OwnerRef(user_id=ALICE.id))

    closed = close_conversation(db, conv.id, ADMIN)

    assert closed.status == ConversationStatus.CLOSED.value
    assert closed.user_id == ALICE.id
    assert closed.guest_user_id is None


def test_owner_can_close_own_conversation(db):
    conv, _ = create_conversation(db, OwnerRef(user_id=ALICE.id))

    assert close_conversation(db, conv.id, ALICE).status == ConversationStatus.CLOSED.value


def test_non_owner_and_guest_cannot_close(db, guest_row):
    alice_conv, _ = create_conversation(db, OwnerRef(user_id=ALICE.id))
    guest_conv, _ = create_conversation(db, OwnerRef(guest_user_id="guest-1"))

    with pytest.raises(Forbidden):
        close_conversation(db, alice_conv.id, BOB)
    with pytest.raises(Forbidden):
        close_conversation(db, guest_conv.id, _guest("guest-1"))

    db.refresh(alice_conv)
    assert alice_conv.status == ConversationStatus.OPEN.value


# ============================================================
# Unread bookkeeping
# ============================================================

@pytest.mark.parametrize("read_by_user", [True, False])
@pytest.mark.parametrize("read_by_admin", [True, False])
def test_touch_overwrites_flags_regardless_of_prior_state(read_by_user, read_by_admin):
    conv = Conversation(status="open", read_by_user=read_by_user, read_by_admin=read_by_admin)

    touch(conv, "admin")
    assert (conv.read_by_user, conv.read_by_admin) == (False, True)

    conv.read_by_user, conv.read_by_admin = read_by_user, read_by_admin
    touch(conv, "guest")
    assert (conv.read_by_user, conv.read_by_admin) == (True, False)

    conv.read_by_user, conv.read_by_admin = read_by_user, read_by_admin
    touch(conv, "user")
    assert (conv.read_by_user, conv.read_by_admin) == (True, False)


def test_touch_promotes_pending_to_open():
    conv = Conversation(status=ConversationStatus.PENDING.value)

    touch(conv, "admin")

    assert conv.status == ConversationStatus.OPEN.value
    assert conv.last_message_at is not None


def test_mark_read_only_touches_callers_flag(db):
    conv, _ = create_conversation(db, OwnerRef(user_id=ALICE.id), initial_message="hi")
    assert conv.read_by_admin is False

    conversations_service.mark_read(db, conv, ADMIN)
    assert (conv.read_by_user, conv.read_by_admin) == (True, True)

    conv.read_by_user = False
    db.commit()
    conversations_service.mark_read(db, conv, ALICE)
    assert conv.read_by_user is True


def test_chat_stats_counts(db):
    create_conversation(db, OwnerRef(user_id=ALICE.id), initial_message="unread")
    read_conv, _ = create_conversation(db, OwnerRef(user_id=BOB.id), initial_message="seen")
    closed_conv, _ = create_conversation(db, OwnerRef(user_id=BOB.id), initial_message="gone")

    conversations_service.mark_read(db, read_conv, ADMIN)
    close_conversation(db, closed_conv.id, ADMIN)

    assert conversations_service.count_unread_for_admin(db) == 1
    assert conversations_service.count_open(db) == 2


def test_unread_counts_for_user_and_guest(db, guest_row):
    from app.services.messages_service import append_message

    alice_conv, _ = create_conversation(db, OwnerRef(user_id=ALICE.id), initial_message="one")
    create_conversation(db, OwnerRef(user_id=ALICE.id), initial_message="two")
    guest_conv, _ = create_conversation(db, OwnerRef(guest_user_id="guest-1"), initial_message="hi")

    assert conversations_service.count_unread_for_user(db, ALICE.id) == 0

    append_message(db, alice_conv, ADMIN, "reply")
    append_message(db, guest_conv, ADMIN, "reply")

    assert conversations_service.count_unread_for_user(db, ALICE.id) == 1
    assert conversations_service.count_unread_for_user(db, BOB.id) == 0
    assert conversations_service.count_unread_for_guest(db, "guest-1") == 1
    assert conversations_service.count_unread_for_actor(db, ALICE) == 1
    assert conversations_service.count_unread_for_actor(db, _guest("guest-1")) == 1

    conversations_service.mark_read(db, alice_conv, ALICE)
    assert conversations_service.count_unread_for_user(db, ALICE.id) == 0
