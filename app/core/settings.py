from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./support_chat.db"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = ""

    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str | None = None

    GUEST_CACHE_TTL_SECONDS: int = 60 * 60 * 24  # 24h

    # Empty string disables the livechat welcome message
    WELCOME_MESSAGE: str = (
        "Welcome! Thank you for contacting us. Please type your question, "
        "and one of our travel specialists will assist you shortly."
    )

    # Delayed system reply to guest messages
    AUTO_REPLY_ENABLED: bool = True
    AUTO_REPLY_DELAY_SECONDS: float = 2.0

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
