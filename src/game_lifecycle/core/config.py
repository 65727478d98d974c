from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from game_lifecycle.db.enums import LeagueEnum


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # DB
    database_url: str = Field(
        default="sqlite+pysqlite:///./game_lifecycle.db",
        validation_alias="DATABASE_URL",
    )
    db_echo: bool = False

    log_level: str = "INFO"

    # api-sports (one host per sport)
    api_sports_key: str | None = Field(default=None, repr=False)
    api_sports_american_football_base_url: str = "https://v1.american-football.api-sports.io"
    api_sports_basketball_base_url: str = "https://v1.basketball.api-sports.io"
    api_sports_hockey_base_url: str = "https://v1.hockey.api-sports.io"
    api_sports_baseball_base_url: str = "https://v1.baseball.api-sports.io"
    api_sports_football_base_url: str = "https://v3.football.api-sports.io"
    api_sports_requests_per_minute: int = 120
    api_sports_burst: int = 5

    # settlement hand-off
    settlement_webhook_url: str | None = None
    settlement_webhook_token: str | None = Field(default=None, repr=False)

    store_ingested_payloads: bool = False

    # lifecycle
    enabled_leagues: list[LeagueEnum] = Field(
        default_factory=lambda: [
            LeagueEnum.NFL,
            LeagueEnum.NBA,
            LeagueEnum.NHL,
            LeagueEnum.MLB,
            LeagueEnum.SOCCER,
        ]
    )
    window_hours_back: int = 36
    window_hours_forward: int = 36
    upsert_batch_size: int = 100
    sync_max_games: int = 200
    finalize_max_games: int = 100
    finalize_stuck_hours: int = 4
    finalize_force_after_hours: int = 12
    settle_max_items: int = 25
    settle_max_attempts: int = 5
    settle_retry_backoff_s: int = 300
    settle_canceled_games: bool = False
    lock_ttl_minutes: int = 5
    backfill_lock_ttl_minutes: int = 60
    backfill_default_days: int = 30
    unknown_status_alert_hours: int = 6
    max_reported_errors: int = 20
    worker_id: str | None = Field(default=None, validation_alias="LIFECYCLE_WORKER_ID")

    # -----------------------------
    # Required-key helpers
    # -----------------------------

    def require_api_sports_key(self) -> str:
        if not self.api_sports_key:
            raise RuntimeError("API_SPORTS_KEY is not set. Set it in the environment or .env file.")
        return self.api_sports_key

    def require_settlement_webhook_url(self) -> str:
        if not self.settlement_webhook_url:
            raise RuntimeError(
                "SETTLEMENT_WEBHOOK_URL is not set. Set it in the environment or .env file."
            )
        return self.settlement_webhook_url


settings = Settings()
