"""
Configuration module for the Clinical Scheduling Service.
Loads settings from environment variables (or a .env file).
"""

from datetime import date
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    app_host: str = Field(
        default="0.0.0.0",
        alias="APP_HOST",
        description="Host to bind the application"
    )
    app_port: int = Field(
        default=8000,
        alias="APP_PORT",
        description="Port to bind the application"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level"
    )

    # Data Store Configuration
    repository_backend: str = Field(
        default="memory",
        alias="REPOSITORY_BACKEND",
        description="Where appointments and schedules live: 'memory' or 'cosmos'"
    )

    # Working Day
    workday_start: str = Field(
        default="08:00",
        alias="WORKDAY_START",
        description="Start of the professional's working day (HH:MM)"
    )
    workday_end: str = Field(
        default="17:00",
        alias="WORKDAY_END",
        description="End of the professional's working day (HH:MM)"
    )
    lunch_start: str = Field(
        default="12:00",
        alias="LUNCH_START",
        description="Start of the lunch break (HH:MM)"
    )
    lunch_end: str = Field(
        default="13:00",
        alias="LUNCH_END",
        description="End of the lunch break (HH:MM)"
    )
    slot_minutes: int = Field(
        default=15,
        alias="SLOT_MINUTES",
        description="Granularity of the time-slot grid in minutes"
    )

    # Billing Rules
    billing_unit_minutes: int = Field(
        default=15,
        alias="BILLING_UNIT_MINUTES",
        description="Minutes per billable unit"
    )
    min_billable_minutes: int = Field(
        default=8,
        alias="MIN_BILLABLE_MINUTES",
        description="Sessions shorter than this cannot be completed or billed"
    )
    late_cancellation_hours: int = Field(
        default=24,
        alias="LATE_CANCELLATION_HOURS",
        description="Patient cancellations inside this window incur a late fee"
    )

    # Recurrence
    recurrence_max_iterations: int = Field(
        default=500,
        alias="RECURRENCE_MAX_ITERATIONS",
        description="Hard cap on candidate dates examined when expanding a series"
    )
    extra_holidays: List[date] = Field(
        default_factory=list,
        alias="EXTRA_HOLIDAYS",
        description="Clinic closure dates in addition to the fixed holidays (JSON list)"
    )

    # External Collaborators
    eligibility_timeout_seconds: float = Field(
        default=10.0,
        alias="ELIGIBILITY_TIMEOUT_SECONDS",
        description="How long to wait for the insurance eligibility service"
    )
    insurance_allow_unregistered: bool = Field(
        default=True,
        alias="INSURANCE_ALLOW_UNREGISTERED",
        description="Local eligibility only: treat patients with no registered authorization as covered"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
        populate_by_name = True


# Global settings instance
settings = Settings()
