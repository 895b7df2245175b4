from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = False

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Providers without an explicit timezone use this one
    default_timezone: str = "UTC"

    # Slot/booking business rules
    slot_granularity_minutes: int = 30
    default_duration_minutes: int = 60
    min_duration_minutes: int = 15
    max_duration_minutes: int = 180
    # Unset means "bookable from the next calendar day" in the provider's timezone
    booking_min_lead_minutes: int | None = None
    max_schedule_days: int = 30

    # Reminder tick
    reminders_enabled: bool = True
    reminder_tick_seconds: int = 300  # 5 minutes

    # Env
    env: str = "development"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
