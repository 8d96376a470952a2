"""Appointment reminder eligibility."""

from datetime import datetime, timedelta
from typing import List

from app.domain.eligibility import EligibilityDecision, Skipped
from app.domain.models import ACTIVE_APPOINTMENT_STATUSES, NotificationType
from app.notifications.payloads import appointment_reminder_data
from app.persistence import AppointmentRepository, NotificationLogRepository, get_session

from .base import BaseScanner


class AppointmentReminderScanner(BaseScanner):
    """Finds pending/confirmed appointments starting roughly a day from now.

    An appointment gets at most one reminder: any existing reminder row for
    it (whatever its status) makes it Skipped. Failed rows are left to the
    Retry Processor.
    """

    notification_type = NotificationType.APPOINTMENT_REMINDER

    def __init__(
        self,
        window_start: timedelta = timedelta(hours=23),
        window_end: timedelta = timedelta(hours=25),
        timezone: str = "America/Los_Angeles",
        settings_defaults=None,
    ):
        super().__init__(settings_defaults)
        self.window_start = window_start
        self.window_end = window_end
        self.timezone = timezone

    def scan(self, now: datetime) -> List[EligibilityDecision]:
        decisions: List[EligibilityDecision] = []

        with get_session() as session:
            settings = self.load_settings(session, now)
            logs = NotificationLogRepository(session)
            appointments = AppointmentRepository(session).find_in_window(
                now + self.window_start,
                now + self.window_end,
                ACTIVE_APPOINTMENT_STATUSES,
            )

            for appointment in appointments:
                if logs.exists_for_source(self.notification_type, appointment.id):
                    decisions.append(Skipped(appointment.id, "already_notified"))
                    continue

                if appointment.customer is None:
                    decisions.append(Skipped(appointment.id, "no_customer"))
                    continue

                decisions.append(
                    self.candidate_decision(
                        appointment.id,
                        appointment.customer,
                        settings,
                        appointment_reminder_data(appointment, self.timezone),
                    )
                )

        self.log_summary(decisions, now)
        return decisions
