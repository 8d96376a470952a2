"""Shared pieces of the eligibility scanners."""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from app.domain.eligibility import Candidate, EligibilityDecision, Eligible, Skipped
from app.domain.models import Customer, NotificationSettings, NotificationType
from app.domain.template_data import TemplateData
from app.logging import get_logger
from app.notifications.preferences import resolve_recipients
from app.persistence import NotificationSettingsRepository

logger = get_logger(__name__, component="scanner")


class BaseScanner:
    """Builds decisions for one notification type.

    Scanners read everything they need inside a single session and return a
    fully materialised decision list; datastore errors propagate.
    """

    notification_type: NotificationType

    def __init__(self, settings_defaults: Optional[Mapping[NotificationType, Dict[str, Any]]] = None):
        self.settings_defaults = settings_defaults or {}

    def load_settings(self, session: Session, now: datetime) -> NotificationSettings:
        return NotificationSettingsRepository(session, self.settings_defaults).get_or_create(
            self.notification_type, now
        )

    def candidate_decision(
        self,
        source_id: str,
        customer: Customer,
        settings: NotificationSettings,
        template_data: TemplateData,
    ) -> EligibilityDecision:
        """Eligible with the channels that will fire, or Skipped when none do."""
        recipients, reason = resolve_recipients(customer, self.notification_type, settings)
        if not recipients:
            return Skipped(source_id, reason)

        return Eligible(
            Candidate(
                source_id=source_id,
                customer_id=customer.id,
                notification_type=self.notification_type,
                recipients=recipients,
                template_data=template_data,
            )
        )

    def log_summary(self, decisions, now: datetime) -> None:
        counts: Dict[str, int] = {}
        for decision in decisions:
            kind = type(decision).__name__
            counts[kind] = counts.get(kind, 0) + 1

        logger.info(
            f"{self.notification_type.value} scan found {len(decisions)} entities "
            f"({', '.join(f'{k}={v}' for k, v in sorted(counts.items())) or 'none'})",
            extra={
                "event": "scanner.completed",
                "notification_type": self.notification_type.value,
                "as_of": now.isoformat(),
                "eligible": counts.get("Eligible", 0),
                "skipped": counts.get("Skipped", 0),
                "not_yet_due": counts.get("NotYetDue", 0),
            },
        )
