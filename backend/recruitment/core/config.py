from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Recruitment Timeline"
    debug: bool = False

    # API
    frontend_url: str = "http://localhost:3000"
    cors_origins: list[str] = [
        "http://localhost:3000",
    ]

    # Redis
    redis_url: str = "redis://localhost:6379"

    # Persistent store key holding the serialized timeline registry
    timelines_key: str = "recruitment:timelines"

    # Pub/Sub channels
    events_channel: str = "recruitment:events"  # status changes + button refreshes
    notifications_channel: str = "recruitment:notifications"  # external notifier
    applications_channel: str = "recruitment:applications"  # consumed lifecycle events

    # Status monitor
    status_check_interval_seconds: float = 60.0  # env: STATUS_CHECK_INTERVAL_SECONDS
    status_monitor_enabled: bool = True  # env: STATUS_MONITOR_ENABLED
    event_bridge_enabled: bool = True  # env: EVENT_BRIDGE_ENABLED

    # Reject overlapping windows for the same role on add/update (default: first match wins)
    reject_overlapping_phases: bool = False  # env: REJECT_OVERLAPPING_PHASES


@lru_cache
def get_settings() -> Settings:
    return Settings()
