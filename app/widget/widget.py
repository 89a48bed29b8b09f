# file: app/widget/widget.py

"""
Client-side chat surface.

States: closed -> needs_identity (guests only) -> no_conversation -> viewing.
Displayed messages always come from GET /messages; relay events only
trigger a re-fetch. Poll and relay listener tasks are cancelled on close
and on conversation switch.
"""

import asyncio
import enum
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from app.schemas.relay_events import (
    JoinRoom,
    LeaveRoom,
    MessageReceived,
    Participant,
    RoomRef,
    TypingData,
    TypingStart,
    TypingStop,
    UserTyping,
)
from app.widget.client import ChatApiError
from app.widget.debounce import TypingDebouncer
from app.widget.identity import GuestIdentityStore
from app.widget.settings import WidgetSettings

logger = logging.getLogger("chat_widget")

# Server answers that invalidate the persisted guest identity
IDENTITY_RESET_CODES = ("identity_required", "access_denied")


class WidgetState(str, enum.Enum):
    CLOSED = "closed"
    NEEDS_IDENTITY = "needs_identity"
    NO_CONVERSATION = "no_conversation"
    VIEWING = "viewing"


class ChatWidget:
    def __init__(
        self,
        api,
        relay=None,
        identity: Optional[GuestIdentityStore] = None,
        settings: Optional[WidgetSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        user: Optional[Participant] = None,
        poll: bool = True,
    ) -> None:
        self.api = api
        self.relay = relay
        self.identity = identity or GuestIdentityStore()
        self.settings = settings or WidgetSettings()
        self.user = user
        self.poll = poll

        self.state = WidgetState.CLOSED
        self.participant: Optional[Participant] = user
        self.conversation_id: Optional[str] = None
        self.messages: List[Dict[str, Any]] = []
        self.pending: List[Dict[str, Any]] = []
        self.peer_typing: set[Participant] = set()
        self.last_error: Optional[str] = None

        self.debouncer = TypingDebouncer(self.settings.TYPING_IDLE_SECONDS, clock)
        self._poll_task: Optional[asyncio.Task] = None
        self._idle_task: Optional[asyncio.Task] = None
        self._listen_task: Optional[asyncio.Task] = None

    @property
    def is_guest(self) -> bool:
        return self.user is None

    # ========================================================
    # Open / close
    # ========================================================

    async def open(self, conversation_id: Optional[str] = None) -> WidgetState:
        if self.state == WidgetState.VIEWING:
            if conversation_id and conversation_id != self.conversation_id:
                await self._view(conversation_id)
            return self.state
        if self.state == WidgetState.NEEDS_IDENTITY:
            return self.state

        self.last_error = None
        self._start_listener()

        if self.is_guest and self.participant is None:
            if not self.identity.load():
                self.state = WidgetState.NEEDS_IDENTITY
                return self.state

            try:
                guest = await self.api.get_guest_me()
            except ChatApiError as e:
                self.state = WidgetState.NO_CONVERSATION
                await self._handle_error(e)
                return self.state

            self.participant = Participant(guest["id"], "guest")

        await self._discover(conversation_id)
        return self.state

    async def close(self) -> None:
        await self._stop_typing()
        await self._leave_current()
        self._cancel(self._listen_task)
        self._listen_task = None

        self.state = WidgetState.CLOSED
        self.conversation_id = None
        self.messages = []
        self.pending = []
        self.peer_typing.clear()

    # ========================================================
    # Identity
    # ========================================================

    async def submit_profile(self, name: str, email: str, phone_number: Optional[str] = None) -> WidgetState:
        if self.state != WidgetState.NEEDS_IDENTITY:
            return self.state

        if not self.identity.load():
            self.identity.issue()

        try:
            guest = await self.api.create_guest(name, email, phone_number)
        except ChatApiError as e:
            await self._handle_error(e)
            return self.state

        self.participant = Participant(guest["id"], "guest")
        self.last_error = None
        await self._discover(None)
        return self.state

    # ========================================================
    # Conversations
    # ========================================================

    async def _discover(self, conversation_id: Optional[str]) -> None:
        if conversation_id:
            await self._view(conversation_id)
            return

        try:
            conversations = await self.api.list_conversations()
        except ChatApiError as e:
            self.state = WidgetState.NO_CONVERSATION
            await self._handle_error(e)
            return

        # Server returns most recent activity first
        current = next((c for c in conversations if c.get("status") != "closed"), None)
        if current:
            await self._view(current["id"])
        else:
            self.state = WidgetState.NO_CONVERSATION

    async def _view(self, conversation_id: str) -> None:
        if self.conversation_id and self.conversation_id != conversation_id:
            await self._stop_typing()
            await self._leave_current()

        self.conversation_id = conversation_id
        self.state = WidgetState.VIEWING
        self.messages = []
        self.pending = []
        self.peer_typing.clear()

        await self._relay_send(JoinRoom(data=RoomRef(conversation_id=conversation_id)))
        await self.refresh()

        if self.poll and self.state == WidgetState.VIEWING and self._poll_task is None:
            self._poll_task = asyncio.create_task(self._poll_loop(conversation_id))

    async def _leave_current(self) -> None:
        # Leave before cancelling: this may run inside the poll task itself
        if self.conversation_id:
            await self._relay_send(LeaveRoom(data=RoomRef(conversation_id=self.conversation_id)))

        self._cancel(self._poll_task)
        self._poll_task = None

    async def refresh(self) -> None:
        if self.state != WidgetState.VIEWING or not self.conversation_id:
            return

        conversation_id = self.conversation_id
        try:
            messages = await self.api.list_messages(conversation_id)
        except ChatApiError as e:
            await self._handle_error(e)
            return

        # Navigated away while waiting: drop the stale result
        if self.state != WidgetState.VIEWING or self.conversation_id != conversation_id:
            return

        self.messages = messages
        self.pending = []
        self.last_error = None

    # ========================================================
    # Composer
    # ========================================================

    async def send(self, text: str) -> Optional[Dict[str, Any]]:
        text = (text or "").strip()
        if not text:
            return None

        if self.state == WidgetState.NO_CONVERSATION:
            try:
                conv = await self.api.create_conversation(message=text)
            except ChatApiError as e:
                await self._handle_error(e)
                return None
            await self._view(conv["id"])
            return conv

        if self.state != WidgetState.VIEWING:
            return None

        self.pending.append({"content": text, "pending": True})
        await self._stop_typing()

        try:
            msg = await self.api.send_message(self.conversation_id, text)
        except ChatApiError as e:
            self.pending = [p for p in self.pending if p["content"] != text]
            await self._handle_error(e)
            return None

        await self.refresh()
        return msg

    async def input_changed(self) -> None:
        if self.state != WidgetState.VIEWING or self.participant is None:
            return
        if self.debouncer.keystroke():
            await self._send_typing(True)
        if self._idle_task is None or self._idle_task.done():
            self._idle_task = asyncio.create_task(self._typing_idle())

    async def tick(self) -> None:
        if self.debouncer.expired():
            await self._send_typing(False)

    async def _stop_typing(self) -> None:
        self._cancel(self._idle_task)
        self._idle_task = None
        if self.debouncer.stop():
            await self._send_typing(False)

    async def _typing_idle(self) -> None:
        """Emits typing-stop once the idle window after the last keystroke ends."""
        while self.debouncer.active:
            delay = self.debouncer.remaining()
            if delay > 0:
                await asyncio.sleep(delay)
                continue
            await self.tick()

    async def _send_typing(self, is_typing: bool) -> None:
        if not self.conversation_id or self.participant is None:
            return

        data = TypingData(
            conversation_id=self.conversation_id,
            participant_id=self.participant.participant_id,
            participant_type=self.participant.participant_type,
        )
        await self._relay_send(TypingStart(data=data) if is_typing else TypingStop(data=data))

    # ========================================================
    # Relay
    # ========================================================

    async def handle_relay_event(self, event) -> None:
        if isinstance(event, MessageReceived):
            if event.data.conversation_id == self.conversation_id:
                await self.refresh()

        elif isinstance(event, UserTyping):
            if event.data.conversation_id != self.conversation_id:
                return
            who = Participant(event.data.participant_id, event.data.participant_type)
            if who == self.participant:
                return
            if event.data.is_typing:
                self.peer_typing.add(who)
            else:
                self.peer_typing.discard(who)

    async def _relay_send(self, event) -> None:
        if self.relay is None:
            return
        try:
            await self.relay.send(event)
        except Exception as e:
            # Best-effort: polling keeps the thread correct
            logger.warning(f"[Widget] Relay send failed ({event.type}): {e}")

    def _start_listener(self) -> None:
        if self.relay is None or self._listen_task is not None:
            return
        self._listen_task = asyncio.create_task(self._listen())

    async def _listen(self) -> None:
        try:
            await self.relay.listen(self.handle_relay_event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"[Widget] Relay listener stopped: {e}")

    async def _poll_loop(self, conversation_id: str) -> None:
        while self.conversation_id == conversation_id:
            await asyncio.sleep(self.settings.POLL_INTERVAL_SECONDS)
            try:
                await self.tick()
                await self.refresh()
            except Exception as e:
                # Keep polling: the next round may succeed
                logger.warning(f"[Widget] Poll failed for conversation_id={conversation_id}: {e}")

    @staticmethod
    def _cancel(task: Optional[asyncio.Task]) -> None:
        if task is not None and not task.done():
            task.cancel()

    # ========================================================
    # Errors
    # ========================================================

    async def _handle_error(self, error: ChatApiError) -> None:
        if self.is_guest and error.code in IDENTITY_RESET_CODES:
            logger.info(f"[Widget] Guest identity rejected ({error.code}), asking for profile")
            await self._stop_typing()
            await self._leave_current()
            self.identity.clear()
            self.participant = None
            self.conversation_id = None
            self.messages = []
            self.pending = []
            self.peer_typing.clear()
            self.state = WidgetState.NEEDS_IDENTITY
            self.last_error = None
            return

        # Anything else is shown as a retryable error
        self.last_error = error.detail
