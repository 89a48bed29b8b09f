from app.widget.client import ChatApiClient, ChatApiError, RelayClient
from app.widget.debounce import TypingDebouncer
from app.widget.identity import GuestIdentityStore
from app.widget.settings import WidgetSettings
from app.widget.widget import ChatWidget, WidgetState

__all__ = [
    "ChatApiClient",
    "ChatApiError",
    "ChatWidget",
    "GuestIdentityStore",
    "RelayClient",
    "TypingDebouncer",
    "WidgetSettings",
    "WidgetState",
]
