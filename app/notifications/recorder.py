"""Outcome Recorder: persists notification log rows and per-type counters.

Each call runs in its own short transaction so a row is durable before the
transport is contacted (write-ahead) and a crash mid-send leaves a visible
``pending`` row behind.
"""

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from app.domain.models import (
    Channel,
    ErrorCategory,
    NotificationLog,
    NotificationSettings,
    NotificationStatus,
    NotificationType,
    default_settings,
)
from app.logging import get_logger
from app.persistence import (
    NotificationLogRepository,
    NotificationSettingsRepository,
    PersistenceError,
    get_session,
)

from .models import RenderedMessage

logger = get_logger(__name__, component="recorder")


class OutcomeRecorder:
    """Writes NotificationLog rows and keeps the settings counters current."""

    def __init__(self, settings_defaults: Optional[Mapping[NotificationType, Dict[str, Any]]] = None):
        """
        Args:
            settings_defaults: Configured defaults used when a settings row is
                created on first reference
        """
        self.settings_defaults = settings_defaults or {}

    def reserve(
        self,
        notification_type: NotificationType,
        channel: Channel,
        recipient: str,
        template_data: Dict[str, Any],
        now: datetime,
        rendered: Optional[RenderedMessage] = None,
        customer_id: Optional[str] = None,
        source_id: Optional[str] = None,
        is_test: bool = False,
    ) -> str:
        """Insert a ``pending`` row and commit it.

        Returns:
            Id of the new row

        Raises:
            PersistenceError: If the row cannot be written
        """
        log = NotificationLog(
            id=uuid.uuid4().hex,
            type=notification_type,
            channel=channel,
            recipient=recipient,
            status=NotificationStatus.PENDING,
            subject=rendered.subject if rendered else None,
            content=rendered.text if rendered else None,
            html_content=rendered.html if rendered else None,
            template_data=template_data,
            customer_id=customer_id,
            source_id=source_id,
            is_test=is_test,
            created_at=now,
        )

        with get_session() as session:
            NotificationLogRepository(session).create(log)

        logger.debug(
            f"Reserved {notification_type.value}/{channel.value} log {log.id}",
            extra={"event": "notification.log.reserved", "log_id": log.id},
        )
        return log.id

    def mark_retrying(self, log_id: str, now: datetime) -> None:
        """Move a failed row back to ``pending`` before it is re-sent."""
        with get_session() as session:
            NotificationLogRepository(session).mark_pending(log_id, now)

    def cancel_retries(self, log_id: str, now: datetime) -> None:
        with get_session() as session:
            NotificationLogRepository(session).cancel_retries(log_id, now)

    def record_sent(
        self,
        log_id: str,
        notification_type: NotificationType,
        message_id: Optional[str],
        now: datetime,
        is_test: bool = False,
    ) -> None:
        """Mark a row ``sent`` and bump the type's sent counter.

        Raises:
            PersistenceError: If the row cannot be updated
        """
        with get_session() as session:
            NotificationLogRepository(session).mark_sent(log_id, message_id, now)

        if not is_test:
            self._bump_counter(notification_type, now, sent=True)

    def record_failed(
        self,
        log_id: str,
        notification_type: NotificationType,
        error: str,
        category: ErrorCategory,
        retryable: bool,
        retry_count: int,
        now: datetime,
        is_test: bool = False,
    ) -> Optional[datetime]:
        """Mark a row ``failed`` and schedule its next retry.

        The row is exhausted (``next_retry_at`` null) when the error is not
        retryable, ``retry_count`` reached the type's ``max_retries``, or it is
        a test send. Exhaustion bumps the type's failed counter.

        Args:
            retry_count: Retries already attempted for this row, including the
                one that just failed

        Returns:
            The scheduled retry time, or None when the row is exhausted

        Raises:
            PersistenceError: If the row cannot be updated
        """
        next_retry_at = None
        if retryable and not is_test:
            settings = self._retry_policy(notification_type, now)
            if retry_count < settings.max_retries:
                next_retry_at = now + timedelta(seconds=settings.delay_for_attempt(retry_count))

        with get_session() as session:
            NotificationLogRepository(session).mark_failed(
                log_id,
                error_message=error,
                error_category=category,
                retry_count=retry_count,
                next_retry_at=next_retry_at,
                now=now,
            )

        if next_retry_at is None and not is_test:
            self._bump_counter(notification_type, now, sent=False)

        return next_retry_at

    def _retry_policy(self, notification_type: NotificationType, now: datetime) -> NotificationSettings:
        # The failed status must still be written when settings are unreadable
        try:
            with get_session() as session:
                return NotificationSettingsRepository(session, self.settings_defaults).get_or_create(
                    notification_type, now
                )
        except PersistenceError as e:
            logger.warning(
                f"Using default retry policy for {notification_type.value}: {e}",
                extra={"event": "notification.settings.unavailable", "notification_type": notification_type.value},
            )
            return default_settings(notification_type, self.settings_defaults.get(notification_type))

    def _bump_counter(self, notification_type: NotificationType, now: datetime, sent: bool) -> None:
        # Counters are advisory; a failed update must not fail the send
        try:
            with get_session() as session:
                repo = NotificationSettingsRepository(session, self.settings_defaults)
                if sent:
                    repo.increment_sent(notification_type, now)
                else:
                    repo.increment_failed(notification_type, now)
        except PersistenceError as e:
            logger.warning(
                f"Failed to update {notification_type.value} counters: {e}",
                extra={
                    "event": "notification.counters.update_failed",
                    "notification_type": notification_type.value,
                    "counter": "sent" if sent else "failed",
                },
            )
