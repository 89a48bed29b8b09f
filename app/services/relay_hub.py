# file: app/services/relay_hub.py

"""
Room-scoped, best-effort fan-out of typing and new-message hints.

The hub never carries message content and is never the source of truth:
clients re-fetch the message log whenever a hint arrives. Delivery
failures drop the connection and are only logged.

Single event loop, not thread-safe.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from app.core.errors import RelayDeliveryFailure
from app.schemas.relay_events import (
    ConversationRef,
    ErrorData,
    JoinRoom,
    LeaveRoom,
    MessageRef,
    MessageReceived,
    NewConversation,
    NewMessage,
    Participant,
    RelayError,
    TypingStart,
    TypingState,
    TypingStop,
    UserTyping,
    inbound_adapter,
)
from app.services.typing_registry import TypingRegistry

logger = logging.getLogger("relay_hub")


@dataclass
class ClientState:
    room: str | None = None
    # (conversation_id, participant) pairs this connection marked as typing
    typing: set[tuple[str, Participant]] = field(default_factory=set)


class RelayHub:
    """
    Connections are any object exposing ``async send_json(dict)``
    (a Starlette WebSocket in production).
    """

    def __init__(self) -> None:
        self.clients: dict[Any, ClientState] = {}
        self.rooms: dict[str, set[Any]] = {}
        self.typing = TypingRegistry()

    # ========================================================
    # Connection lifecycle
    # ========================================================

    def connect(self, conn) -> None:
        self.clients.setdefault(conn, ClientState())
        logger.debug(f"[Relay] Connected clients={len(self.clients)}")

    async def disconnect(self, conn) -> None:
        state = self.clients.pop(conn, None)
        if state is None:
            return

        if state.room:
            self._remove_member(state.room, conn)

        # Peers must not keep seeing a typing indicator from a dead connection
        for conversation_id, participant in state.typing:
            if self.typing.clear(conversation_id, participant):
                await self._broadcast_typing(conversation_id, participant, False)

        logger.debug(f"[Relay] Disconnected clients={len(self.clients)}")

    # ========================================================
    # Rooms
    # ========================================================

    async def join_room(self, conn, conversation_id: str) -> None:
        state = self.clients.setdefault(conn, ClientState())

        if state.room == conversation_id:
            return
        if state.room is not None:
            await self.leave_room(conn, state.room)

        self.rooms.setdefault(conversation_id, set()).add(conn)
        state.room = conversation_id
        logger.info(f"[Relay] Joined conversation_id={conversation_id} members={len(self.rooms[conversation_id])}")

    async def leave_room(self, conn, conversation_id: str) -> None:
        state = self.clients.get(conn)
        if state is None or state.room != conversation_id:
            return

        self._remove_member(conversation_id, conn)
        state.room = None

        for key in [k for k in state.typing if k[0] == conversation_id]:
            state.typing.discard(key)
            if self.typing.clear(*key):
                await self._broadcast_typing(conversation_id, key[1], False)

        logger.info(f"[Relay] Left conversation_id={conversation_id}")

    def members(self, conversation_id: str) -> set:
        return set(self.rooms.get(conversation_id, ()))

    def _remove_member(self, conversation_id: str, conn) -> None:
        members = self.rooms.get(conversation_id)
        if not members:
            return
        members.discard(conn)
        if not members:
            del self.rooms[conversation_id]

    # ========================================================
    # Hints
    # ========================================================

    async def notify_typing(
        self,
        conversation_id: str,
        participant_id: str,
        participant_type: str,
        is_typing: bool,
        origin=None,
    ) -> None:
        participant = Participant(participant_id, participant_type)
        self.typing.set_typing(conversation_id, participant, is_typing)

        state = self.clients.get(origin) if origin is not None else None
        if state is not None:
            if is_typing:
                state.typing.add((conversation_id, participant))
            else:
                state.typing.discard((conversation_id, participant))

        # Last write wins: always forwarded, even when unchanged
        await self._broadcast_typing(conversation_id, participant, is_typing, exclude=origin)

    async def notify_new_message(
        self,
        conversation_id: str,
        message_id: str,
        sender_id: str,
        sender_type: str,
        origin=None,
    ) -> None:
        participant = Participant(sender_id, sender_type)
        was_typing = self.typing.clear(conversation_id, participant)
        for state in self.clients.values():
            state.typing.discard((conversation_id, participant))

        await self._broadcast(
            conversation_id,
            MessageReceived(
                data=MessageRef(
                    conversation_id=conversation_id,
                    message_id=message_id,
                    sender_id=sender_id,
                    sender_type=sender_type,
                )
            ),
        )

        # A sent message implies the sender stopped typing
        if was_typing or origin is not None:
            await self._broadcast_typing(conversation_id, participant, False, exclude=origin)

    async def announce_conversation(self, conversation_id: str, subject: str, created_at) -> None:
        event = NewConversation(
            data=ConversationRef(conversation_id=conversation_id, subject=subject, created_at=created_at)
        )
        await self._send_many(list(self.clients), event)

    # ========================================================
    # Inbound dispatch
    # ========================================================

    async def dispatch(self, conn, raw: Any) -> None:
        try:
            event = inbound_adapter.validate_python(raw)
        except ValidationError as e:
            logger.warning(f"[Relay] Invalid event: {e.error_count()} error(s)")
            await self._send_many([conn], RelayError(data=ErrorData(detail="invalid event")))
            return

        if isinstance(event, JoinRoom):
            await self.join_room(conn, event.data.conversation_id)
        elif isinstance(event, LeaveRoom):
            await self.leave_room(conn, event.data.conversation_id)
        elif isinstance(event, (TypingStart, TypingStop)):
            await self.notify_typing(
                event.data.conversation_id,
                event.data.participant_id,
                event.data.participant_type,
                isinstance(event, TypingStart),
                origin=conn,
            )
        elif isinstance(event, NewMessage):
            await self.notify_new_message(
                event.data.conversation_id,
                event.data.message_id,
                event.data.sender_id,
                event.data.sender_type,
                origin=conn,
            )

    # ========================================================
    # Delivery
    # ========================================================

    async def _broadcast_typing(self, conversation_id: str, participant: Participant, is_typing: bool, exclude=None):
        await self._broadcast(
            conversation_id,
            UserTyping(
                data=TypingState(
                    conversation_id=conversation_id,
                    participant_id=participant.participant_id,
                    participant_type=participant.participant_type,
                    is_typing=is_typing,
                )
            ),
            exclude=exclude,
        )

    async def _broadcast(self, conversation_id: str, event, exclude=None) -> None:
        targets = [c for c in self.rooms.get(conversation_id, ()) if c is not exclude]
        await self._send_many(targets, event)

    async def _send_many(self, targets: list, event) -> None:
        if not targets:
            return

        payload = event.model_dump(mode="json")
        results = await asyncio.gather(
            *[self._safe_send(conn, payload) for conn in targets],
            return_exceptions=True,
        )

        for conn, ok in zip(targets, results):
            if ok is not True:
                await self.disconnect(conn)

    async def _safe_send(self, conn, payload: dict) -> bool:
        try:
            await conn.send_json(payload)
            return True
        except Exception as e:
            failure = RelayDeliveryFailure(f"{payload.get('type')}: {e}")
            logger.warning(f"[Relay] Delivery failed, dropping connection: {failure}")
            return False


relay_hub = RelayHub()


def get_relay_hub() -> RelayHub:
    return relay_hub
