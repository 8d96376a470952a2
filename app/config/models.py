"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from app.domain.models import NotificationType

from .validators import CRON_FORMAT_ERROR, is_valid_cron_expression


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class BusinessConfig(BaseModel):
    """Business profile exposed to every template as ``business``."""

    name: str = Field("Puppy Day", min_length=1)
    address: str = "14936 Leffingwell Rd, La Mirada, CA 90638"
    phone: str = "(657) 252-2903"
    email: str = "puppyday14936@gmail.com"
    hours: str = "Monday-Saturday, 9:00 AM - 5:00 PM"
    website: str = "https://thepuppyday.com"
    timezone: str = Field("America/Los_Angeles", description="Timezone used for dates in messages")

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    def template_context(self) -> Dict[str, str]:
        return self.model_dump(exclude={"timezone"})


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="Log output format (json or key-value)")

    model_config = {"use_enum_values": True}


class JobsConfig(BaseModel):
    """Tuning for the scan jobs and the retry processor."""

    reminder_window_start_hours: float = Field(23, ge=0, le=168)
    reminder_window_end_hours: float = Field(25, ge=0, le=168)
    retention_cooldown_days: int = Field(7, ge=0, le=365)
    default_grooming_frequency_weeks: int = Field(8, ge=1, le=52)
    retry_batch_size: int = Field(100, ge=1, le=1000)
    lock_ttl_seconds: int = Field(900, ge=60, le=86400)
    waitlist_offer_expiration_hours: int = Field(2, ge=1, le=72)

    @model_validator(mode="after")
    def validate_window(self):
        if self.reminder_window_end_hours <= self.reminder_window_start_hours:
            raise ValueError("reminder_window_end_hours must be greater than reminder_window_start_hours")
        return self


class MockConfig(BaseModel):
    """Mock transport behaviour when USE_MOCKS is set."""

    min_latency_ms: int = Field(150, ge=0, le=10000)
    max_latency_ms: int = Field(400, ge=0, le=10000)
    failure_rate: float = Field(0.03, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def validate_latency(self):
        if self.max_latency_ms < self.min_latency_ms:
            raise ValueError("max_latency_ms must be greater than or equal to min_latency_ms")
        return self


class SchedulerConfig(BaseModel):
    """In-process scheduler settings."""

    enabled: bool = True
    retry_cron: str = Field("*/5 * * * *", description="How often the retry processor runs")
    timezone: str = "UTC"

    @field_validator("retry_cron")
    @classmethod
    def validate_retry_cron(cls, v: str) -> str:
        if not is_valid_cron_expression(v):
            raise ValueError(CRON_FORMAT_ERROR)
        return v


class NotificationDefaultsConfig(BaseModel):
    """Overrides for the settings row created the first time a type is used."""

    email_enabled: Optional[bool] = None
    sms_enabled: Optional[bool] = None
    schedule_enabled: Optional[bool] = None
    schedule_cron: Optional[str] = None
    max_retries: Optional[int] = Field(None, ge=0, le=10)
    retry_delays_seconds: Optional[List[int]] = None

    model_config = {"extra": "forbid"}

    @field_validator("schedule_cron")
    @classmethod
    def validate_schedule_cron(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not is_valid_cron_expression(v):
            raise ValueError(CRON_FORMAT_ERROR)
        return v

    @field_validator("retry_delays_seconds")
    @classmethod
    def validate_delays(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is not None and any(delay < 0 for delay in v):
            raise ValueError("retry_delays_seconds must be non-negative")
        return v


class AppConfig(BaseModel):
    """Root configuration object for the notification service.

    Every section has defaults, so an empty file is a valid configuration.
    """

    business: BusinessConfig = Field(default_factory=BusinessConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    jobs: JobsConfig = Field(default_factory=JobsConfig)
    mock: MockConfig = Field(default_factory=MockConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    notification_defaults: Dict[NotificationType, NotificationDefaultsConfig] = Field(
        default_factory=dict
    )

    def settings_overrides(self) -> Dict[NotificationType, Dict[str, Any]]:
        """Configured default overrides, without unset fields."""
        return {
            notification_type: defaults.model_dump(exclude_none=True)
            for notification_type, defaults in self.notification_defaults.items()
        }
