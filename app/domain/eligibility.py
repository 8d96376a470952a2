"""Scanner output types: candidates and per-entity eligibility decisions."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .models import CHANNEL_ORDER, Channel, NotificationType
from .template_data import TemplateData


@dataclass(frozen=True)
class Candidate:
    """One entity that should receive a notification right now.

    Attributes:
        source_id: Appointment, pet or waitlist entry the send is for
        customer_id: Owning customer
        notification_type: Type being sent
        recipients: Address per channel that will fire
        template_data: Typed substitution values
    """

    source_id: str
    customer_id: Optional[str]
    notification_type: NotificationType
    recipients: Dict[Channel, str]
    template_data: TemplateData

    @property
    def channels(self) -> List[Channel]:
        """Channels to dispatch, email before SMS."""
        return [channel for channel in CHANNEL_ORDER if channel in self.recipients]


@dataclass(frozen=True)
class Eligible:
    candidate: Candidate

    @property
    def source_id(self) -> str:
        return self.candidate.source_id


@dataclass(frozen=True)
class Skipped:
    source_id: str
    reason: str


@dataclass(frozen=True)
class NotYetDue:
    source_id: str
    detail: Optional[str] = field(default=None)


EligibilityDecision = Union[Eligible, Skipped, NotYetDue]
