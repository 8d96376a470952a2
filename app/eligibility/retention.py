"""Retention reminder eligibility: pets that are overdue for grooming."""

from datetime import datetime, timedelta
from typing import List

from app.domain.eligibility import EligibilityDecision, NotYetDue, Skipped
from app.domain.models import NotificationType
from app.notifications.payloads import booking_url, retention_reminder_data
from app.notifications.preferences import is_marketing_opted_out
from app.persistence import (
    AppointmentRepository,
    NotificationLogRepository,
    PetRepository,
    get_session,
)
from app.utils.timestamps import whole_weeks_between

from .base import BaseScanner


class RetentionReminderScanner(BaseScanner):
    """Walks active pets and decides who is due a "time to book" nudge.

    A pet is due once the whole weeks since its last completed appointment
    reach its breed's grooming frequency. Retention reminders are marketing,
    so owners who opted out of marketing are skipped, and a pet reminded
    within the cool-down window is skipped.
    """

    notification_type = NotificationType.RETENTION_REMINDER

    def __init__(
        self,
        app_url: str,
        cooldown: timedelta = timedelta(days=7),
        default_frequency_weeks: int = 8,
        settings_defaults=None,
    ):
        super().__init__(settings_defaults)
        self.app_url = app_url
        self.cooldown = cooldown
        self.default_frequency_weeks = default_frequency_weeks

    def scan(self, now: datetime) -> List[EligibilityDecision]:
        decisions: List[EligibilityDecision] = []

        with get_session() as session:
            settings = self.load_settings(session, now)
            logs = NotificationLogRepository(session)
            last_completed = AppointmentRepository(session).last_completed_by_pet()

            for pet in PetRepository(session).list_active():
                owner = pet.owner
                if owner is None:
                    decisions.append(Skipped(pet.id, "no_owner"))
                    continue

                if is_marketing_opted_out(owner):
                    decisions.append(Skipped(pet.id, "marketing_opt_out"))
                    continue

                last_visit = last_completed.get(pet.id)
                if last_visit is None:
                    decisions.append(Skipped(pet.id, "no_completed_appointment"))
                    continue

                if logs.exists_for_source(self.notification_type, pet.id, since=now - self.cooldown):
                    decisions.append(Skipped(pet.id, "recently_notified"))
                    continue

                frequency = self.default_frequency_weeks
                if pet.breed is not None and pet.breed.grooming_frequency_weeks:
                    frequency = pet.breed.grooming_frequency_weeks

                weeks = whole_weeks_between(last_visit, now)
                if weeks < frequency:
                    decisions.append(NotYetDue(pet.id, f"{weeks} of {frequency} weeks"))
                    continue

                decisions.append(
                    self.candidate_decision(
                        pet.id,
                        owner,
                        settings,
                        retention_reminder_data(pet, weeks, frequency, booking_url(self.app_url)),
                    )
                )

        self.log_summary(decisions, now)
        return decisions
