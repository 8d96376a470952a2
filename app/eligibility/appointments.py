"""Eligibility for notifications triggered by a single appointment event."""

from datetime import datetime

from app.domain.eligibility import EligibilityDecision, Skipped
from app.domain.models import NotificationType
from app.notifications.payloads import appointment_cancelled_data, booking_confirmation_data
from app.persistence import AppointmentRepository, RecordNotFoundError, get_session

from .base import BaseScanner

_PAYLOAD_BUILDERS = {
    NotificationType.BOOKING_CONFIRMATION: booking_confirmation_data,
    NotificationType.APPOINTMENT_CANCELLED: appointment_cancelled_data,
}


class AppointmentEventScanner(BaseScanner):
    """Decides whether a booking confirmation or cancellation notice goes out."""

    def __init__(
        self,
        notification_type: NotificationType,
        timezone: str = "America/Los_Angeles",
        settings_defaults=None,
    ):
        if notification_type not in _PAYLOAD_BUILDERS:
            raise ValueError(f"{notification_type.value} is not an appointment event notification")
        super().__init__(settings_defaults)
        self.notification_type = notification_type
        self.timezone = timezone

    def decide(self, appointment_id: str, now: datetime) -> EligibilityDecision:
        """
        Raises:
            RecordNotFoundError: If the appointment does not exist
        """
        with get_session() as session:
            settings = self.load_settings(session, now)
            appointment = AppointmentRepository(session).get(appointment_id)

        if appointment is None:
            raise RecordNotFoundError(f"Appointment not found: {appointment_id}")
        if appointment.customer is None:
            decision = Skipped(appointment.id, "no_customer")
        else:
            decision = self.candidate_decision(
                appointment.id,
                appointment.customer,
                settings,
                _PAYLOAD_BUILDERS[self.notification_type](appointment, self.timezone),
            )

        self.log_summary([decision], now)
        return decision
