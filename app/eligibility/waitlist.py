"""Waitlist offer eligibility for a slot that just opened."""

from datetime import date, datetime
from typing import List

from app.domain.eligibility import EligibilityDecision, Skipped
from app.domain.models import NotificationType
from app.notifications.payloads import claim_url, waitlist_offer_data
from app.persistence import WaitlistRepository, get_session

from .base import BaseScanner

MAX_NOTIFICATIONS_PER_SLOT = 10


def clamp_max_notifications(value: int) -> int:
    return max(1, min(MAX_NOTIFICATIONS_PER_SLOT, value))


class WaitlistOfferScanner(BaseScanner):
    """Picks the longest-waiting active entries for a service, first come first served."""

    notification_type = NotificationType.WAITLIST_OFFER

    def __init__(self, app_url: str, expiration_hours: int = 2, settings_defaults=None):
        super().__init__(settings_defaults)
        self.app_url = app_url
        self.expiration_hours = expiration_hours

    def scan_slot(
        self,
        service_id: str,
        available_date: date,
        available_time: str,
        now: datetime,
        max_notifications: int = 1,
    ) -> List[EligibilityDecision]:
        """Decisions for at most ``max_notifications`` entries (clamped to 1..10)."""
        limit = clamp_max_notifications(max_notifications)
        decisions: List[EligibilityDecision] = []

        with get_session() as session:
            settings = self.load_settings(session, now)

            for entry in WaitlistRepository(session).active_for_service(service_id, limit):
                if entry.customer is None:
                    decisions.append(Skipped(entry.id, "no_customer"))
                    continue

                decisions.append(
                    self.candidate_decision(
                        entry.id,
                        entry.customer,
                        settings,
                        waitlist_offer_data(
                            entry,
                            available_date,
                            available_time,
                            claim_url(self.app_url, entry.id),
                            self.expiration_hours,
                        ),
                    )
                )

        self.log_summary(decisions, now)
        return decisions
