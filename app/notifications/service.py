"""Dispatch Engine: renders, transmits and records one notification at a time.

Every public method returns a DispatchOutcome. Failures of any kind
(rendering, transport, datastore) become failed outcomes and never escape
to the caller, so one bad candidate cannot abort a batch.
"""

import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

from app.domain.eligibility import Candidate
from app.domain.models import (
    Channel,
    ErrorCategory,
    NotificationLog,
    NotificationStatus,
    NotificationTemplate,
    NotificationType,
)
from app.domain.template_data import SAMPLE_TEMPLATE_DATA, TemplateData, parse_template_data
from app.logging import get_logger, mask_recipient
from app.logging.context import log_context
from app.persistence import (
    NotificationLogRepository,
    NotificationTemplateRepository,
    PersistenceError,
    RecordNotFoundError,
    get_session,
)
from app.utils.timestamps import utc_now

from .errors import ClassifiedError, classify_error
from .models import (
    DispatchOutcome,
    EmailParams,
    NotificationError,
    NotificationTemplateError,
    RenderedMessage,
    SendResult,
    SMSParams,
)
from .recorder import OutcomeRecorder
from .templates import SMS_SINGLE_SEGMENT_LENGTH, TemplateRenderer, sms_segment_count
from .transports import EmailTransport, SMSTransport

logger = get_logger(__name__, component="dispatch")


class ResendNotAllowedError(NotificationError):
    """Raised when a manual resend targets a row that did not fail."""

    pass


class NotificationService:
    """Delivers notifications over email and SMS.

    Flow for each (recipient, channel):
    1. Render content (a DB template overrides the packaged one)
    2. Reserve a ``pending`` log row (write-ahead)
    3. Call the channel's transport
    4. Record ``sent`` or ``failed`` with the classified error
    """

    def __init__(
        self,
        renderer: TemplateRenderer,
        email_transport: EmailTransport,
        sms_transport: SMSTransport,
        recorder: OutcomeRecorder,
        clock: Callable = utc_now,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.renderer = renderer
        self.email_transport = email_transport
        self.sms_transport = sms_transport
        self.recorder = recorder
        self.clock = clock
        self.logger = logger_instance or logger

    # Public operations

    def dispatch(self, candidate: Candidate, channel: Channel) -> DispatchOutcome:
        """Send a candidate on one of its channels."""
        recipient = candidate.recipients.get(channel)
        if recipient is None:
            return DispatchOutcome(
                notification_type=candidate.notification_type,
                channel=channel,
                recipient="",
                success=False,
                error=f"Candidate has no {channel.value} recipient",
                error_category=ErrorCategory.VALIDATION,
                source_id=candidate.source_id,
            )

        return self._guarded(
            candidate.notification_type,
            channel,
            recipient,
            candidate.source_id,
            lambda: self._deliver_new(
                candidate.notification_type,
                channel,
                recipient,
                candidate.template_data,
                customer_id=candidate.customer_id,
                source_id=candidate.source_id,
            ),
        )

    def dispatch_all(self, candidate: Candidate) -> List[DispatchOutcome]:
        """Send a candidate on every channel it carries, email first."""
        return [self.dispatch(candidate, channel) for channel in candidate.channels]

    def retry(self, log: NotificationLog) -> DispatchOutcome:
        """Re-send a failed row in place, bumping its ``retry_count``."""
        return self._guarded(
            log.type,
            log.channel,
            log.recipient,
            log.source_id,
            lambda: self._deliver_retry(log),
        )

    def resend(self, log_id: str) -> DispatchOutcome:
        """Manually re-send a failed row as a new row.

        The original row keeps its history but stops being retried
        automatically.

        Raises:
            RecordNotFoundError: If no row has this id
            ResendNotAllowedError: If the row is not ``failed``
        """
        with get_session() as session:
            original = NotificationLogRepository(session).get(log_id)

        if original is None:
            raise RecordNotFoundError(f"Notification log not found: {log_id}")
        if original.status != NotificationStatus.FAILED:
            raise ResendNotAllowedError(
                f"Cannot resend notification with status '{original.status.value}'. Only failed notifications can be resent."
            )

        def deliver() -> DispatchOutcome:
            now = self.clock()
            template_data = parse_template_data(original.template_data)
            self.recorder.cancel_retries(original.id, now)
            return self._deliver_new(
                original.type,
                original.channel,
                original.recipient,
                template_data,
                customer_id=original.customer_id,
                source_id=original.source_id,
                is_test=original.is_test,
            )

        with log_context(resend_of=original.id):
            outcome = self._guarded(original.type, original.channel, original.recipient, original.source_id, deliver)

        self.logger.info(
            f"Manual resend of {log_id} {'succeeded' if outcome.success else 'failed'}",
            extra={"event": "notification.resend", "log_id": log_id, "new_log_id": outcome.log_id},
        )
        return outcome

    def send_test(self, notification_type: NotificationType, channel: Channel, recipient: str) -> DispatchOutcome:
        """Send sample content to an arbitrary recipient; never retried."""
        return self._guarded(
            notification_type,
            channel,
            recipient,
            None,
            lambda: self._deliver_new(
                notification_type,
                channel,
                recipient,
                SAMPLE_TEMPLATE_DATA[notification_type],
                is_test=True,
            ),
        )

    # Internals

    def _guarded(self, notification_type, channel, recipient, source_id, action) -> DispatchOutcome:
        with log_context(notification_type=notification_type.value, channel=channel.value, source_id=source_id):
            try:
                return action()
            except Exception as e:
                self.logger.error(
                    f"Dispatch of {notification_type.value} to {mask_recipient(recipient)} failed: {e}",
                    exc_info=True,
                    extra={"event": "notification.dispatch.error", "error_type": type(e).__name__},
                )
                classified = classify_error(e)
                return DispatchOutcome(
                    notification_type=notification_type,
                    channel=channel,
                    recipient=recipient,
                    success=False,
                    error=classified.message,
                    error_category=classified.category,
                    retryable=False,
                    source_id=source_id,
                )

    def _deliver_new(
        self,
        notification_type: NotificationType,
        channel: Channel,
        recipient: str,
        template_data: TemplateData,
        customer_id: Optional[str] = None,
        source_id: Optional[str] = None,
        is_test: bool = False,
    ) -> DispatchOutcome:
        now = self.clock()
        rendered, render_error = self._try_render(notification_type, channel, template_data)

        log_id = self.recorder.reserve(
            notification_type,
            channel,
            recipient,
            template_data.model_dump(),
            now,
            rendered=rendered,
            customer_id=customer_id,
            source_id=source_id,
            is_test=is_test,
        )

        return self._transmit(
            log_id,
            notification_type,
            channel,
            recipient,
            rendered,
            render_error,
            retry_count=0,
            source_id=source_id,
            is_test=is_test,
        )

    def _deliver_retry(self, log: NotificationLog) -> DispatchOutcome:
        now = self.clock()
        self.recorder.mark_retrying(log.id, now)

        try:
            template_data = parse_template_data(log.template_data)
        except ValidationError as e:
            rendered, render_error = None, classify_template_error(e)
        else:
            rendered, render_error = self._try_render(log.type, log.channel, template_data)

        return self._transmit(
            log.id,
            log.type,
            log.channel,
            log.recipient,
            rendered,
            render_error,
            retry_count=log.retry_count + 1,
            source_id=log.source_id,
            is_test=log.is_test,
        )

    def _try_render(self, notification_type, channel, template_data):
        try:
            override = self._load_override(notification_type, channel)
            return self.renderer.render(notification_type, channel, template_data, override), None
        except (NotificationTemplateError, ValidationError) as e:
            return None, classify_template_error(e)
        except PersistenceError as e:
            return None, classify_error(e)

    def _load_override(self, notification_type: NotificationType, channel: Channel) -> Optional[NotificationTemplate]:
        with get_session() as session:
            return NotificationTemplateRepository(session).get_active(notification_type, channel)

    def _transmit(
        self,
        log_id: str,
        notification_type: NotificationType,
        channel: Channel,
        recipient: str,
        rendered: Optional[RenderedMessage],
        render_error: Optional[ClassifiedError],
        retry_count: int,
        source_id: Optional[str],
        is_test: bool,
    ) -> DispatchOutcome:
        if render_error is not None:
            return self._fail(log_id, notification_type, channel, recipient, render_error, retry_count, source_id, is_test)

        try:
            result = self._send(channel, recipient, rendered)
        except Exception as e:
            classified = classify_error(e)
        else:
            if result.success:
                now = self.clock()
                try:
                    self.recorder.record_sent(log_id, notification_type, result.message_id, now, is_test=is_test)
                except PersistenceError as e:
                    # The transport accepted the message, so it still counts as sent
                    self.logger.error(
                        f"{notification_type.value} delivered but log {log_id} could not be marked sent: {e}",
                        extra={
                            "event": "notification.record.sent_failed",
                            "log_id": log_id,
                            "message_id": result.message_id,
                        },
                    )
                self.logger.info(
                    f"{notification_type.value} sent via {channel.value} to {mask_recipient(recipient)}",
                    extra={
                        "event": "notification.dispatch.sent",
                        "log_id": log_id,
                        "message_id": result.message_id,
                        "retry_count": retry_count,
                    },
                )
                return DispatchOutcome(
                    notification_type=notification_type,
                    channel=channel,
                    recipient=recipient,
                    success=True,
                    log_id=log_id,
                    message_id=result.message_id,
                    source_id=source_id,
                )
            classified = classify_error(result.error, result.status_code)

        return self._fail(log_id, notification_type, channel, recipient, classified, retry_count, source_id, is_test)

    def _send(self, channel: Channel, recipient: str, rendered: RenderedMessage) -> SendResult:
        if channel == Channel.SMS:
            if len(rendered.text) > SMS_SINGLE_SEGMENT_LENGTH:
                self.logger.warning(
                    f"SMS body is {len(rendered.text)} characters and will be split",
                    extra={
                        "event": "notification.sms.long",
                        "length": len(rendered.text),
                        "segments": sms_segment_count(rendered.text),
                    },
                )
            return self.sms_transport.send(SMSParams(to=recipient, body=rendered.text))

        return self.email_transport.send(
            EmailParams(to=recipient, subject=rendered.subject or "", html=rendered.html or "", text=rendered.text)
        )

    def _fail(
        self,
        log_id: str,
        notification_type: NotificationType,
        channel: Channel,
        recipient: str,
        classified: ClassifiedError,
        retry_count: int,
        source_id: Optional[str],
        is_test: bool,
    ) -> DispatchOutcome:
        now = self.clock()
        try:
            next_retry_at = self.recorder.record_failed(
                log_id,
                notification_type,
                error=classified.message,
                category=classified.category,
                retryable=classified.retryable,
                retry_count=retry_count,
                now=now,
                is_test=is_test,
            )
        except PersistenceError as e:
            next_retry_at = None
            self.logger.error(
                f"Log {log_id} could not be marked failed and stays pending: {e}",
                extra={"event": "notification.record.mark_failed_error", "log_id": log_id},
            )

        self.logger.warning(
            f"{notification_type.value} via {channel.value} to {mask_recipient(recipient)} failed: {classified.message}",
            extra={
                "event": "notification.dispatch.failed",
                "log_id": log_id,
                "error_category": classified.category.value,
                "retry_count": retry_count,
                "next_retry_at": next_retry_at.isoformat() if next_retry_at else None,
            },
        )

        return DispatchOutcome(
            notification_type=notification_type,
            channel=channel,
            recipient=recipient,
            success=False,
            log_id=log_id,
            error=classified.message,
            error_category=classified.category,
            retryable=next_retry_at is not None,
            source_id=source_id,
        )


def classify_template_error(error: Exception) -> ClassifiedError:
    """Rendering problems are permanent: retrying would render the same way."""
    return ClassifiedError(ErrorCategory.VALIDATION, f"Template error: {error}")
