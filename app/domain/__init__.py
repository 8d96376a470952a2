"""Domain models for the Puppy Day notification pipeline."""

from .eligibility import Candidate, EligibilityDecision, Eligible, NotYetDue, Skipped
from .models import (
    ACTIVE_APPOINTMENT_STATUSES,
    DEFAULT_NOTIFICATION_SETTINGS,
    CHANNEL_ORDER,
    TRANSACTIONAL_TYPES,
    Appointment,
    AppointmentStatus,
    Breed,
    Channel,
    Customer,
    ErrorCategory,
    NotificationLog,
    NotificationSettings,
    NotificationStatus,
    NotificationTemplate,
    NotificationType,
    Pet,
    WaitlistEntry,
    WaitlistStatus,
    default_settings,
)
from .template_data import (
    AppointmentCancelledData,
    AppointmentReminderData,
    BookingConfirmationData,
    RetentionReminderData,
    TemplateData,
    WaitlistOfferData,
    parse_template_data,
)

__all__ = [
    "ACTIVE_APPOINTMENT_STATUSES",
    "DEFAULT_NOTIFICATION_SETTINGS",
    "CHANNEL_ORDER",
    "TRANSACTIONAL_TYPES",
    "Appointment",
    "AppointmentStatus",
    "Breed",
    "Channel",
    "Customer",
    "ErrorCategory",
    "NotificationLog",
    "NotificationSettings",
    "NotificationStatus",
    "NotificationTemplate",
    "NotificationType",
    "Pet",
    "WaitlistEntry",
    "WaitlistStatus",
    "default_settings",
    "Candidate",
    "EligibilityDecision",
    "Eligible",
    "NotYetDue",
    "Skipped",
    "AppointmentCancelledData",
    "AppointmentReminderData",
    "BookingConfirmationData",
    "RetentionReminderData",
    "TemplateData",
    "WaitlistOfferData",
    "parse_template_data",
]
