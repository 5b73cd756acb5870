from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TIMEZONE = "Asia/Shanghai"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Scheduler
    tz: str = DEFAULT_TIMEZONE
    tick_interval: float = 0.5  # seconds
    log_level: str = "INFO"

    # Notifications
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    discord_webhook_url: str = ""
    notification_enabled: bool = True

    # Bugutv check-in job
    bugutv_username: str = ""
    bugutv_password: str = ""
    bugutv_cron: str = "0 0 8 * * *"
    bugutv_max_attempts: int = 3
    bugutv_retry_delay: float = 10.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
