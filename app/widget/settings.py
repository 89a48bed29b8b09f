from pydantic_settings import BaseSettings


class WidgetSettings(BaseSettings):
    BASE_URL: str = "http://localhost:8000/v1"
    POLL_INTERVAL_SECONDS: float = 3.0
    TYPING_IDLE_SECONDS: float = 2.0
    REQUEST_TIMEOUT_SECONDS: float = 15.0

    # None keeps the guest token in memory only
    IDENTITY_PATH: str | None = None

    class Config:
        env_prefix = "CHAT_WIDGET_"
        env_file = ".env"
        extra = "ignore"

    @property
    def relay_url(self) -> str:
        base = self.BASE_URL.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://"):]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://"):]
        return f"{base}/ws"
