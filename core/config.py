"""Dashboard configuration."""

import logging

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)
load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # Transport (PostgREST endpoint of the bot's event tables)
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_key: str = Field(default="", alias="SUPABASE_KEY")
    request_timeout_seconds: float = Field(default=10.0, alias="REQUEST_TIMEOUT_SECONDS")
    poll_interval_seconds: float = Field(default=2.0, alias="POLL_INTERVAL_SECONDS")

    # Backfill limits (most recent N, newest first)
    trades_backfill_limit: int = Field(default=500, alias="TRADES_BACKFILL_LIMIT")
    analysis_backfill_limit: int = Field(default=100, alias="ANALYSIS_BACKFILL_LIMIT")
    status_backfill_limit: int = Field(default=1, alias="STATUS_BACKFILL_LIMIT")

    # Store caps (0 = unbounded for the session)
    max_trades: int = Field(default=0, alias="MAX_TRADES")
    max_analysis: int = Field(default=0, alias="MAX_ANALYSIS")

    # Activity feed
    activity_feed_capacity: int = Field(default=50, alias="ACTIVITY_FEED_CAPACITY")
    feed_seed_trades: int = Field(default=40, alias="FEED_SEED_TRADES")
    feed_seed_analysis: int = Field(default=20, alias="FEED_SEED_ANALYSIS")

    # Heartbeat
    stale_after_seconds: float = Field(default=120.0, alias="STALE_AFTER_SECONDS")

    # Exchanges that allow short positions
    short_exchanges: str = Field(default="delta", alias="SHORT_EXCHANGES")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @property
    def short_exchange_set(self) -> set[str]:
        return {e.strip().lower() for e in self.short_exchanges.split(",") if e.strip()}

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @property
    def rest_base_url(self) -> str:
        return self.supabase_url.rstrip("/") + "/rest/v1"


settings = Settings()
