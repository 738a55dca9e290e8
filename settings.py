"""Runtime settings for the outreach engine.

Values come from the environment (a local .env is loaded first):

  DATABASE_URL               postgresql+asyncpg://... or sqlite+aiosqlite:///...
  DB_POOL_SIZE / DB_MAX_OVERFLOW / DB_POOL_TIMEOUT
  UNIPILE_DSN / UNIPILE_API_KEY / UNIPILE_ACCOUNT_ID
  PROVIDER_TIMEOUT_SECONDS   per-call timeout at the provider boundary
  COMPANY_DOMAIN             attendees on this domain are internal
  NOTES_SENDER               address the meeting-notes assistant mails from
  ACTIVE_HOURS_START / ACTIVE_HOURS_END / ACTIVE_DAYS / SCHEDULER_TIMEZONE
  MAX_FOLLOWUPS_PER_RUN

Usage:
    from settings import load_settings
    settings = load_settings()
"""
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


class ActiveHours(BaseModel):
    start_hour: int = Field(default=9, ge=0, le=23)
    end_hour: int = Field(default=18, ge=0, le=23)
    # ISO weekdays, 1 = Monday
    days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    timezone: str = "America/Chicago"

    @field_validator("days")
    @classmethod
    def _check_days(cls, value: List[int]) -> List[int]:
        for day in value:
            if day < 1 or day > 7:
                raise ValueError(f"Active day {day} is not an ISO weekday (1-7)")
        return sorted(set(value))


class ProviderSettings(BaseModel):
    dsn: Optional[str] = None
    api_key: Optional[str] = None
    account_id: Optional[str] = None
    timeout_seconds: float = Field(default=30.0, gt=0)

    @property
    def configured(self) -> bool:
        return bool(self.dsn and self.api_key and self.account_id)


class Settings(BaseModel):
    database_url: str
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    company_domain: str = "useunderflow.com"
    notes_sender: str = "assistant@day.ai"
    active_hours: ActiveHours = Field(default_factory=ActiveHours)
    max_followups_per_run: int = Field(default=5, ge=1)


def _parse_days(raw: Optional[str]) -> Optional[List[int]]:
    if not raw:
        return None
    return [int(part) for part in raw.split(",") if part.strip()]


def load_settings() -> Settings:
    """Build Settings from the environment.

    Raises RuntimeError when DATABASE_URL is missing, and pydantic's
    ValidationError when a value is out of range.
    """
    load_dotenv()

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise RuntimeError(
            "DATABASE_URL environment variable is not set. "
            "Copy .env.example to .env and set your database credentials."
        )

    active_hours_data = {
        "start_hour": int(os.environ.get("ACTIVE_HOURS_START", "9")),
        "end_hour": int(os.environ.get("ACTIVE_HOURS_END", "18")),
        "timezone": os.environ.get("SCHEDULER_TIMEZONE", "America/Chicago"),
    }
    days = _parse_days(os.environ.get("ACTIVE_DAYS"))
    if days:
        active_hours_data["days"] = days
    active_hours = ActiveHours(**active_hours_data)

    return Settings(
        database_url=database_url,
        db_pool_size=int(os.environ.get("DB_POOL_SIZE", "5")),
        db_max_overflow=int(os.environ.get("DB_MAX_OVERFLOW", "10")),
        db_pool_timeout=int(os.environ.get("DB_POOL_TIMEOUT", "30")),
        provider=ProviderSettings(
            dsn=os.environ.get("UNIPILE_DSN"),
            api_key=os.environ.get("UNIPILE_API_KEY"),
            account_id=os.environ.get("UNIPILE_ACCOUNT_ID"),
            timeout_seconds=float(os.environ.get("PROVIDER_TIMEOUT_SECONDS", "30")),
        ),
        company_domain=os.environ.get("COMPANY_DOMAIN", "useunderflow.com"),
        notes_sender=os.environ.get("NOTES_SENDER", "assistant@day.ai"),
        active_hours=active_hours,
        max_followups_per_run=int(os.environ.get("MAX_FOLLOWUPS_PER_RUN", "5")),
    )
