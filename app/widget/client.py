# file: app/widget/client.py

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp
from pydantic import BaseModel, ValidationError

from app.schemas.relay_events import outbound_adapter
from app.widget.identity import GuestIdentityStore
from app.widget.settings import WidgetSettings

logger = logging.getLogger("widget_client")


class ChatApiError(Exception):
    def __init__(self, status: int, code: str, detail: str = ""):
        self.status = status
        self.code = code
        self.detail = detail or code
        super().__init__(f"{status} {code}: {self.detail}")


# ============================================================
# HTTP client for the chat API
# ============================================================
class ChatApiClient:
    def __init__(
        self,
        settings: WidgetSettings,
        identity: GuestIdentityStore,
        user_id: Optional[str] = None,
        user_role: Optional[str] = None,
    ) -> None:
        self.base_url = settings.BASE_URL.rstrip("/")
        self.identity = identity
        self.user_id = user_id
        self.user_role = user_role
        self.timeout = aiohttp.ClientTimeout(total=settings.REQUEST_TIMEOUT_SECONDS)
        self._session: Optional[aiohttp.ClientSession] = None

    # --------------------------------------------------------
    # HEADERS
    # --------------------------------------------------------
    def _headers(self) -> Dict[str, str]:
        if self.user_id:
            headers = {"X-User-Id": self.user_id}
            if self.user_role:
                headers["X-User-Role"] = self.user_role
            return headers

        token = self.identity.load()
        return {"X-Guest-Session": token} if token else {}

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        session = await self._get_session()

        try:
            async with session.request(method, url, headers=self._headers(), **kwargs) as resp:
                if resp.status >= 400:
                    try:
                        body = await resp.json()
                    except (aiohttp.ContentTypeError, ValueError):
                        body = {}
                    code = body.get("error") or "http_error"
                    detail = body.get("detail") or resp.reason or ""
                    logger.warning(f"[Widget] {method} {path} -> {resp.status} {code}")
                    raise ChatApiError(resp.status, code, str(detail))

                return await resp.json()

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"❌ [Widget] {method} {path} failed: {e}")
            raise ChatApiError(0, "network_error", str(e)) from e

    # --------------------------------------------------------
    # Guest identity
    # --------------------------------------------------------
    async def create_guest(self, name: str, email: str, phone_number: Optional[str] = None) -> Dict[str, Any]:
        payload = {"name": name, "email": email, "phone_number": phone_number}
        return await self._request("POST", "/guest-users", json=payload)

    async def get_guest_me(self) -> Dict[str, Any]:
        return await self._request("GET", "/guest-users/me")

    # --------------------------------------------------------
    # Conversations
    # --------------------------------------------------------
    async def list_conversations(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/conversations")

    async def create_conversation(
        self,
        message: Optional[str] = None,
        subject: str = "General Inquiry",
        item_type: str = "livechat",
    ) -> Dict[str, Any]:
        payload = {"subject": subject, "item_type": item_type, "message": message}
        return await self._request("POST", "/conversations", json=payload)

    async def close_conversation(self, conversation_id: str) -> Dict[str, Any]:
        return await self._request("PUT", f"/conversations/{conversation_id}/close")

    # --------------------------------------------------------
    # Messages
    # --------------------------------------------------------
    async def send_message(self, conversation_id: str, content: str) -> Dict[str, Any]:
        payload = {"conversation_id": conversation_id, "content": content}
        return await self._request("POST", "/messages", json=payload)

    async def unread_count(self) -> Dict[str, Any]:
        return await self._request("GET", "/conversations/unread-count")

    async def list_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        return await self._request("GET", "/messages", params={"conversation_id": conversation_id})


# ============================================================
# Relay client (WebSocket)
# ============================================================
class RelayClient:
    def __init__(self, settings: WidgetSettings) -> None:
        self.url = settings.relay_url
        self.timeout = aiohttp.ClientTimeout(total=None, sock_connect=settings.REQUEST_TIMEOUT_SECONDS)
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        if self.connected:
            return
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        self._ws = await self._session.ws_connect(self.url, heartbeat=20)
        logger.info(f"[Relay] Connected to {self.url}")

    async def send(self, event: BaseModel) -> None:
        if not self.connected:
            await self.connect()
        await self._ws.send_json(event.model_dump(mode="json"))

    async def listen(self, handler: Callable[[BaseModel], Awaitable[None]]) -> None:
        """
        Delivers server events until the socket closes.
        Malformed frames are skipped.
        """
        if not self.connected:
            await self.connect()

        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    event = outbound_adapter.validate_json(msg.data)
                except ValidationError:
                    logger.warning("[Relay] Skipping malformed event")
                    continue
                await handler(event)
            elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                break

    async def close(self) -> None:
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._session is not None and not self._session.closed:
            await self._session.close()
