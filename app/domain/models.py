"""Core domain models for customers, appointments and notifications.

This module defines the data structures used throughout the application:
- Enumerations for notification types, channels and statuses
- Customer, Pet, Breed, Appointment, WaitlistEntry: read models for the scanners
- NotificationLog: the persisted outcome of one send attempt
- NotificationSettings: per-type delivery and retry policy
- NotificationTemplate: editable message templates
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class NotificationType(str, Enum):
    """Notification kinds handled by the pipeline."""

    BOOKING_CONFIRMATION = "booking_confirmation"
    APPOINTMENT_REMINDER = "appointment_reminder"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    RETENTION_REMINDER = "retention_reminder"
    WAITLIST_OFFER = "waitlist_offer"


# Sent because of something the customer did; preferences do not apply
TRANSACTIONAL_TYPES = frozenset({
    NotificationType.BOOKING_CONFIRMATION,
    NotificationType.APPOINTMENT_CANCELLED,
    NotificationType.WAITLIST_OFFER,
})


class Channel(str, Enum):
    """Delivery channel."""

    EMAIL = "email"
    SMS = "sms"


# Dispatch order when a candidate fires on several channels
CHANNEL_ORDER = (Channel.EMAIL, Channel.SMS)


class NotificationStatus(str, Enum):
    """Lifecycle status of a NotificationLog row."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class ErrorCategory(str, Enum):
    """Classification of a failed send, stored for the log viewer."""

    TRANSIENT = "transient"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Appointments that can still be attended
ACTIVE_APPOINTMENT_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


class WaitlistStatus(str, Enum):
    """Waitlist entry states."""

    ACTIVE = "active"
    NOTIFIED = "notified"
    BOOKED = "booked"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class Customer(BaseModel):
    """Customer contact details and communication preferences."""

    id: str
    first_name: str
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    preferences: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("email", "phone")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty contact fields as missing."""
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None


class Breed(BaseModel):
    """Dog breed with its recommended grooming cadence."""

    id: str
    name: str
    grooming_frequency_weeks: Optional[int] = Field(None, ge=1)


class Pet(BaseModel):
    """Pet with its owner and breed resolved."""

    id: str
    name: str
    owner_id: Optional[str] = None
    is_active: bool = True
    owner: Optional[Customer] = None
    breed: Optional[Breed] = None


class Appointment(BaseModel):
    """Grooming appointment with the related entities resolved."""

    id: str
    customer_id: str
    pet_id: Optional[str] = None
    service_id: Optional[str] = None
    scheduled_at: datetime
    status: AppointmentStatus
    total_price: Optional[float] = None
    customer: Optional[Customer] = None
    pet_name: Optional[str] = None
    service_name: Optional[str] = None


class WaitlistEntry(BaseModel):
    """Customer waiting for a slot on a given service."""

    id: str
    customer_id: str
    pet_id: Optional[str] = None
    service_id: str
    status: WaitlistStatus = WaitlistStatus.ACTIVE
    created_at: datetime
    notified_at: Optional[datetime] = None
    offer_expires_at: Optional[datetime] = None
    customer: Optional[Customer] = None
    pet_name: Optional[str] = None


class NotificationLog(BaseModel):
    """Persisted record of one send attempt and its outcome.

    ``retry_count`` and ``next_retry_at`` are the only fields that change
    once the row leaves ``pending`` for the last time.
    """

    id: str
    type: NotificationType
    channel: Channel
    recipient: str
    status: NotificationStatus
    subject: Optional[str] = None
    content: Optional[str] = None
    html_content: Optional[str] = None
    template_data: Dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    error_category: Optional[ErrorCategory] = None
    message_id: Optional[str] = None
    tracking_id: Optional[str] = None
    customer_id: Optional[str] = None
    source_id: Optional[str] = None
    is_test: bool = False
    retry_count: int = 0
    next_retry_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None

    def is_exhausted(self, max_retries: int) -> bool:
        """Whether no further automatic retry will happen for this row."""
        if self.status != NotificationStatus.FAILED:
            return False
        return self.retry_count >= max_retries or self.next_retry_at is None


class NotificationSettings(BaseModel):
    """Delivery and retry policy for one notification type."""

    notification_type: NotificationType
    email_enabled: bool = True
    sms_enabled: bool = True
    schedule_enabled: bool = False
    schedule_cron: Optional[str] = None
    max_retries: int = Field(2, ge=0)
    retry_delays_seconds: List[int] = Field(default_factory=lambda: [30, 300])
    last_sent_at: Optional[datetime] = None
    total_sent_count: int = 0
    total_failed_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def channel_enabled(self, channel: Channel) -> bool:
        """Whether the given channel fires for this type."""
        return self.email_enabled if channel == Channel.EMAIL else self.sms_enabled

    def delay_for_attempt(self, attempt: int) -> int:
        """Seconds to wait before retry number ``attempt + 1``.

        ``attempt`` is the number of retries already made. Indexes past the
        end of the list reuse the last delay; an empty list means no wait.
        """
        if not self.retry_delays_seconds:
            return 0
        index = min(max(attempt, 0), len(self.retry_delays_seconds) - 1)
        return self.retry_delays_seconds[index]


DEFAULT_NOTIFICATION_SETTINGS: Dict[NotificationType, Dict[str, Any]] = {
    NotificationType.BOOKING_CONFIRMATION: {
        "email_enabled": True,
        "sms_enabled": True,
        "schedule_enabled": False,
        "schedule_cron": None,
        "max_retries": 2,
        "retry_delays_seconds": [30, 300],
    },
    NotificationType.APPOINTMENT_REMINDER: {
        "email_enabled": False,
        "sms_enabled": True,
        "schedule_enabled": True,
        "schedule_cron": "0 * * * *",
        "max_retries": 2,
        "retry_delays_seconds": [30, 300],
    },
    NotificationType.APPOINTMENT_CANCELLED: {
        "email_enabled": True,
        "sms_enabled": True,
        "schedule_enabled": False,
        "schedule_cron": None,
        "max_retries": 1,
        "retry_delays_seconds": [30],
    },
    NotificationType.RETENTION_REMINDER: {
        "email_enabled": True,
        "sms_enabled": True,
        "schedule_enabled": True,
        "schedule_cron": "0 9 * * *",
        "max_retries": 2,
        "retry_delays_seconds": [30, 300],
    },
    NotificationType.WAITLIST_OFFER: {
        "email_enabled": False,
        "sms_enabled": True,
        "schedule_enabled": False,
        "schedule_cron": None,
        "max_retries": 2,
        "retry_delays_seconds": [30, 300],
    },
}


def default_settings(
    notification_type: NotificationType, overrides: Optional[Dict[str, Any]] = None
) -> NotificationSettings:
    """Build the initial settings row for a type.

    Args:
        notification_type: Type to build settings for
        overrides: Configured values that replace the built-in defaults
    """
    values = dict(DEFAULT_NOTIFICATION_SETTINGS[notification_type])
    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})
    return NotificationSettings(notification_type=notification_type, **values)


class NotificationTemplate(BaseModel):
    """Editable template for one (type, channel) pair."""

    id: str
    name: str
    type: NotificationType
    channel: Channel
    subject_template: Optional[str] = None
    html_template: Optional[str] = None
    text_template: str
    is_active: bool = True
    version: int = 1
