"""Notification delivery for the Puppy Day pipeline.

This package provides:
- NotificationService: the Dispatch Engine (dispatch, retry, resend, test sends)
- OutcomeRecorder: write-ahead log rows and per-type counters
- TemplateRenderer: Jinja2 rendering with database template overrides
- Transports: SMTP email, Twilio SMS and their mock counterparts
- classify_error: failure categories that drive retry decisions
"""

from .errors import ClassifiedError, classify_error
from .mock import MockEmailTransport, MockSMSTransport
from .models import (
    DispatchOutcome,
    EmailParams,
    NotificationError,
    NotificationTemplateError,
    RenderedMessage,
    SendResult,
    SMSParams,
    SMTPDeliveryError,
    TransportError,
)
from .preferences import is_marketing_opted_out, resolve_recipients
from .recorder import OutcomeRecorder
from .service import NotificationService, ResendNotAllowedError
from .sms_client import TwilioSMSTransport
from .smtp_client import SMTPClient, SMTPEmailTransport, build_sender_address
from .templates import TemplateRenderer, sms_segment_count
from .transports import EmailTransport, SMSTransport

__all__ = [
    # Main service
    "NotificationService",
    "OutcomeRecorder",
    # Models and results
    "DispatchOutcome",
    "EmailParams",
    "RenderedMessage",
    "SendResult",
    "SMSParams",
    "ClassifiedError",
    # Exceptions
    "NotificationError",
    "NotificationTemplateError",
    "ResendNotAllowedError",
    "SMTPDeliveryError",
    "TransportError",
    # Components
    "TemplateRenderer",
    "EmailTransport",
    "SMSTransport",
    "SMTPClient",
    "SMTPEmailTransport",
    "TwilioSMSTransport",
    "MockEmailTransport",
    "MockSMSTransport",
    # Utilities
    "build_sender_address",
    "classify_error",
    "is_marketing_opted_out",
    "resolve_recipients",
    "sms_segment_count",
]
