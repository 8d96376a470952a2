"""Eligibility Scanner: decides who should be notified as of a given time."""

from .appointments import AppointmentEventScanner
from .reminders import AppointmentReminderScanner
from .retention import RetentionReminderScanner
from .waitlist import MAX_NOTIFICATIONS_PER_SLOT, WaitlistOfferScanner, clamp_max_notifications

__all__ = [
    "AppointmentEventScanner",
    "AppointmentReminderScanner",
    "RetentionReminderScanner",
    "WaitlistOfferScanner",
    "MAX_NOTIFICATIONS_PER_SLOT",
    "clamp_max_notifications",
]
