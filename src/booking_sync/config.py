"""Configuration management for Booking Sync application."""

from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models.calendar import BarberCalendar
from .utils.exceptions import ConfigurationError

load_dotenv()


class GoogleConfig(BaseSettings):
    """Google OAuth client configuration."""

    client_id: Optional[str] = Field(None, validation_alias="GOOGLE_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="GOOGLE_CLIENT_SECRET")
    token_url: str = Field(
        default="https://oauth2.googleapis.com/token",
        validation_alias="GOOGLE_TOKEN_URL",
    )
    api_base: str = Field(
        default="https://www.googleapis.com/calendar/v3",
        validation_alias="GOOGLE_CALENDAR_API",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_parse_none_str="",  # Treat empty string as None
        populate_by_name=True,
    )


class SyncSettings(BaseSettings):
    """Tuning knobs for sync passes."""

    page_size: int = Field(default=250, validation_alias="SYNC_PAGE_SIZE")
    request_timeout_seconds: float = Field(
        default=30.0, validation_alias="SYNC_REQUEST_TIMEOUT"
    )
    pass_timeout_seconds: float = Field(
        default=300.0, validation_alias="SYNC_PASS_TIMEOUT"
    )
    fallback_interval_minutes: int = Field(
        default=15, validation_alias="SYNC_FALLBACK_INTERVAL_MINUTES"
    )
    failure_alert_threshold: int = Field(
        default=5, validation_alias="SYNC_FAILURE_ALERT_THRESHOLD"
    )
    commit_retries: int = Field(default=3, validation_alias="SYNC_COMMIT_RETRIES")
    commit_retry_delay_seconds: float = Field(
        default=0.5, validation_alias="SYNC_COMMIT_RETRY_DELAY"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


class AppConfig(BaseSettings):
    """Application configuration."""

    google: GoogleConfig = Field(default_factory=GoogleConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)

    # Storage
    database_url: str = Field(
        default="sqlite:///booking_sync.db", validation_alias="DATABASE_URL"
    )
    db_pool_timeout: int = Field(default=30, validation_alias="DB_POOL_TIMEOUT")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, validation_alias="LOG_FILE")

    # Webhook server
    webhook_host: str = Field(default="0.0.0.0", validation_alias="WEBHOOK_HOST")
    webhook_port: int = Field(default=8080, validation_alias="WEBHOOK_PORT")
    # Public HTTPS URL Google pushes notifications to
    webhook_address: Optional[str] = Field(
        default=None, validation_alias="WEBHOOK_ADDRESS"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


def _calendar_from_yaml(name: str, data: dict[str, Any]) -> BarberCalendar:
    if not data.get("calendar_id"):
        raise ConfigurationError(f"Calendar '{name}' requires calendar_id")
    if data.get("barber_id") is None:
        raise ConfigurationError(f"Calendar '{name}' requires barber_id")
    return BarberCalendar(
        name=name,
        calendar_id=data["calendar_id"],
        barber_id=int(data["barber_id"]),
        channel_id=data.get("channel_id"),
        channel_token=data.get("channel_token"),
        refresh_token=data.get("refresh_token"),
        interval_minutes=data.get("interval_minutes"),
    )


class SyncConfig:
    """Barber calendars to mirror, loaded from YAML."""

    def __init__(self, config_path: Path = Path("sync_config.yaml")):
        self.calendars: dict[str, BarberCalendar] = {}

        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}

            for name, cal_data in (data.get("calendars") or {}).items():
                self.calendars[name] = _calendar_from_yaml(name, cal_data or {})

    @property
    def has_config(self) -> bool:
        return len(self.calendars) > 0

    def by_calendar_id(self, calendar_id: str) -> Optional[BarberCalendar]:
        for calendar in self.calendars.values():
            if calendar.calendar_id == calendar_id:
                return calendar
        return None

    def by_channel_id(self, channel_id: str) -> Optional[BarberCalendar]:
        """Resolve which barber calendar a push notification concerns."""
        for calendar in self.calendars.values():
            if calendar.channel_id and calendar.channel_id == channel_id:
                return calendar
        return None


# Global config instances
config = AppConfig()
sync_config = SyncConfig()
