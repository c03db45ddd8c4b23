# booking_engine/core/config.py
import logging
import os
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


class Settings(BaseSettings):
    """Runtime configuration for the booking engine."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "test", "staging", "production"] = "development"

    database_url: str = Field(
        default="sqlite+pysqlite:///./booking_engine.db",
        description="SQLAlchemy URL for the transactional store",
    )
    sql_echo: bool = False
    log_level: str = "INFO"

    # Slot generation
    slot_granularity_minutes: int = Field(default=15, ge=1, le=240)
    default_service_duration_minutes: int = Field(default=120, ge=1)

    # Audit trail
    audit_enabled: bool = True

    default_timezone: str = "UTC"

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    def get_database_url(self) -> str:
        """Return the database URL, forcing in-memory SQLite under pytest."""
        if is_running_tests() and self.environment != "test":
            return "sqlite+pysqlite:///:memory:"
        return self.database_url

    @property
    def is_sqlite(self) -> bool:
        return self.get_database_url().startswith("sqlite")


settings = Settings()
