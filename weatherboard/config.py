import pytz
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ── Application ────────────────────────────────────────────────────────────
    app_name: str = "Weatherboard API"
    app_version: str = "0.1.0"
    debug: bool = False

    # ── Database ───────────────────────────────────────────────────────────────
    database_url: str = "postgresql+asyncpg://weatherboard:weatherboard@db:5432/weatherboard"

    # ── Redis / Celery ─────────────────────────────────────────────────────────
    redis_url: str = "redis://redis:6379/0"

    # ── Weather provider (OpenWeatherMap current weather) ──────────────────────
    openweather_api_key: str = ""
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"
    openweather_units: str = "metric"
    provider_timeout_seconds: float = 10.0

    # ── Ingestion ──────────────────────────────────────────────────────────────
    # Readings older than this are removed after every ingestion cycle
    retention_days: int = 7

    # Same cadence as the display poll
    ingest_interval_minutes: int = 10

    # Strict mode fails the whole cycle when any single city fails
    ingest_strict_mode: bool = False

    # ── Display ────────────────────────────────────────────────────────────────
    display_timezone: str = "Asia/Tokyo"

    # None → reduce over the whole table
    snapshot_window_hours: int | None = None

    @field_validator("retention_days", "ingest_interval_minutes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("display_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        if v not in pytz.all_timezones_set:
            raise ValueError(f"unknown timezone '{v}'")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
