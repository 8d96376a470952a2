"""Data models and exceptions for the notification service.

This module defines transport parameters, send results, dispatch outcomes
and the exceptions used throughout the notification pipeline.
"""

from dataclasses import dataclass
from typing import Optional

from app.domain.models import Channel, ErrorCategory, NotificationType


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when template rendering fails due to configuration or missing variables."""

    pass


class TransportError(NotificationError):
    """Raised by a transport when the provider rejects or cannot take a message.

    Attributes:
        status_code: Provider HTTP status, when there was one
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SMTPDeliveryError(TransportError):
    """Raised when SMTP delivery fails."""

    pass


@dataclass(frozen=True)
class EmailParams:
    to: str
    subject: str
    html: str
    text: str
    from_: Optional[str] = None


@dataclass(frozen=True)
class SMSParams:
    to: str
    body: str
    from_: Optional[str] = None


@dataclass
class SendResult:
    """What a transport reports back for one message.

    Transports return ``success=False`` with ``error`` for provider
    rejections instead of raising.
    """

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    segment_count: Optional[int] = None


@dataclass(frozen=True)
class RenderedMessage:
    """Rendered content for one channel.

    SMS messages only use ``text``.
    """

    text: str
    subject: Optional[str] = None
    html: Optional[str] = None


@dataclass
class DispatchOutcome:
    """Structured result of one dispatch, retry, resend or test send.

    Attributes:
        log_id: NotificationLog row written for the attempt (None if the row
            could not be written)
        success: Whether the transport accepted the message
        error: Failure description
        error_category: Classification of the failure
        retryable: Whether the Retry Processor may try again
    """

    notification_type: NotificationType
    channel: Channel
    recipient: str
    success: bool
    log_id: Optional[str] = None
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_category: Optional[ErrorCategory] = None
    retryable: bool = False
    source_id: Optional[str] = None
