from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "PeopleForce Slack Status Sync"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    peopleforce_api_url: str = "https://app.peopleforce.io/api/public/v3"
    peopleforce_api_key: str | None = None
    peopleforce_timeout_seconds: float = 10.0

    slack_bot_token: str | None = None
    # Status writes need users.profile:write, which only user tokens carry.
    slack_user_token: str | None = None
    slack_signing_secret: str | None = None

    port: int = 3000
    sync_cron: str = "*/15 * * * *"
    sync_on_startup: bool = True
    scheduler_enabled: bool = True
    timezone: str | None = None  # IANA name; None means the host's local zone
    max_concurrency: int = 8
    leave_types_timeout_seconds: float = 3.0
    sync_api_token: str | None = None


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
