from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App settings
    PROJECT_NAME: str = "DailySpendRate"
    API_PREFIX: str = "/api"
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # State storage (ledger, cursor, credentials)
    STATE_BACKEND: str = Field(default="dynamo")  # "dynamo" or "memory"
    DYNAMO_REGION: str = Field(default="eu-west-1")
    DYNAMO_STATE_TABLE: str = Field(default="daily-spend-state", validation_alias="DYNAMO_TABLE_STATE")

    # Revolut Business expenses feed
    REVOLUT_API_BASE: str = Field(default="https://b2b.revolut.com/api/1.0")
    REVOLUT_CLIENT_ASSERTION: str = Field(default="")
    REVOLUT_INITIAL_REFRESH_TOKEN: str = Field(default="")
    REVOLUT_TIMEOUT_SECONDS: float = 30.0

    # Sync and analytics
    LOOKBACK_DAYS: int = 30
    RECHECK_TODAY: bool = Field(default=False)
    TARGET_DAILY_RATE: float = 150.0
    DEFAULT_CURRENCY: str = "AUD"

    # Telegram notifications
    TELEGRAM_BOT_TOKEN: str = Field(default="")
    TELEGRAM_CHAT_ID: str = Field(default="")

    # Scheduler (daily sync, UTC)
    SCHEDULER_ENABLED: bool = Field(default=True)
    SYNC_CRON_HOUR: int = 8
    SYNC_CRON_MINUTE: int = 0

    # Shared secret for manual trigger endpoints (disabled when empty)
    TRIGGER_TOKEN: str = Field(default="")


settings = Settings()
