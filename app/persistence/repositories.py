"""Data access layer (repositories) for persistence operations.

Repositories wrap a caller-owned session, return domain models rather than
ORM rows, and translate SQLAlchemy failures into PersistenceError.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.models import (
    Appointment,
    AppointmentStatus,
    Channel,
    ErrorCategory,
    NotificationLog,
    NotificationSettings,
    NotificationStatus,
    NotificationTemplate,
    NotificationType,
    Pet,
    WaitlistEntry,
    WaitlistStatus,
    default_settings,
)

from .exceptions import DataIntegrityError, PersistenceError, RecordNotFoundError
from .schema import (
    AppointmentModel,
    BreedModel,
    CustomerModel,
    JobLockModel,
    NotificationLogModel,
    NotificationSettingsModel,
    NotificationTemplateModel,
    PetModel,
    ServiceModel,
    WaitlistEntryModel,
    from_db_timestamp,
    to_db_timestamp,
)

logger = logging.getLogger(__name__)


class AppointmentRepository:
    """Read access to appointments with customer, pet and service resolved."""

    def __init__(self, session: Session):
        self.session = session

    def _base_query(self):
        return (
            select(AppointmentModel, CustomerModel, PetModel.name, ServiceModel.name)
            .join(CustomerModel, AppointmentModel.customer_id == CustomerModel.id)
            .outerjoin(PetModel, AppointmentModel.pet_id == PetModel.id)
            .outerjoin(ServiceModel, AppointmentModel.service_id == ServiceModel.id)
        )

    @staticmethod
    def _to_domain(row) -> Appointment:
        appointment, customer, pet_name, service_name = row
        return Appointment(
            id=appointment.id,
            customer_id=appointment.customer_id,
            pet_id=appointment.pet_id,
            service_id=appointment.service_id,
            scheduled_at=from_db_timestamp(appointment.scheduled_at),
            status=appointment.status,
            total_price=appointment.total_price,
            customer=customer.to_domain(),
            pet_name=pet_name,
            service_name=service_name,
        )

    def get(self, appointment_id: str) -> Optional[Appointment]:
        """Retrieve one appointment by id, or None."""
        try:
            stmt = self._base_query().where(AppointmentModel.id == appointment_id)
            row = self.session.execute(stmt).one_or_none()
            return self._to_domain(row) if row is not None else None

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving appointment {appointment_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve appointment: {e}") from e

    def find_in_window(
        self,
        start: datetime,
        end: datetime,
        statuses: Iterable[AppointmentStatus],
    ) -> List[Appointment]:
        """Appointments scheduled within ``[start, end]`` with one of ``statuses``.

        Results are ordered by scheduled time, then id.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                self._base_query()
                .where(
                    AppointmentModel.scheduled_at >= to_db_timestamp(start),
                    AppointmentModel.scheduled_at <= to_db_timestamp(end),
                    AppointmentModel.status.in_([s.value for s in statuses]),
                )
                .order_by(AppointmentModel.scheduled_at, AppointmentModel.id)
            )
            return [self._to_domain(row) for row in self.session.execute(stmt).all()]

        except SQLAlchemyError as e:
            logger.error(f"Error querying appointments between {start} and {end}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to query appointments: {e}") from e

    def last_completed_by_pet(self) -> Dict[str, datetime]:
        """Most recent completed appointment time per pet id."""
        try:
            stmt = (
                select(AppointmentModel.pet_id, func.max(AppointmentModel.scheduled_at))
                .where(
                    AppointmentModel.status == AppointmentStatus.COMPLETED.value,
                    AppointmentModel.pet_id.is_not(None),
                )
                .group_by(AppointmentModel.pet_id)
            )
            return {
                pet_id: from_db_timestamp(last_at)
                for pet_id, last_at in self.session.execute(stmt).all()
            }

        except SQLAlchemyError as e:
            logger.error(f"Error loading completed appointments: {e}", exc_info=True)
            raise PersistenceError(f"Failed to load completed appointments: {e}") from e


class PetRepository:
    """Read access to pets for retention scanning."""

    def __init__(self, session: Session):
        self.session = session

    def list_active(self) -> List[Pet]:
        """Active pets with owner and breed, ordered by name then id.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                select(PetModel, CustomerModel, BreedModel)
                .outerjoin(CustomerModel, PetModel.owner_id == CustomerModel.id)
                .outerjoin(BreedModel, PetModel.breed_id == BreedModel.id)
                .where(PetModel.is_active.is_(True))
                .order_by(PetModel.name, PetModel.id)
            )
            pets = []
            for pet, owner, breed in self.session.execute(stmt).all():
                pets.append(
                    Pet(
                        id=pet.id,
                        name=pet.name,
                        owner_id=pet.owner_id,
                        is_active=pet.is_active,
                        owner=owner.to_domain() if owner is not None else None,
                        breed=breed.to_domain() if breed is not None else None,
                    )
                )
            return pets

        except SQLAlchemyError as e:
            logger.error(f"Error listing active pets: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list active pets: {e}") from e


class WaitlistRepository:
    """Waitlist entries for slot-opening offers."""

    def __init__(self, session: Session):
        self.session = session

    def active_for_service(self, service_id: str, limit: int) -> List[WaitlistEntry]:
        """Active entries for a service in first-come order (created_at, then id)."""
        try:
            stmt = (
                select(WaitlistEntryModel, CustomerModel, PetModel.name)
                .outerjoin(CustomerModel, WaitlistEntryModel.customer_id == CustomerModel.id)
                .outerjoin(PetModel, WaitlistEntryModel.pet_id == PetModel.id)
                .where(
                    WaitlistEntryModel.service_id == service_id,
                    WaitlistEntryModel.status == WaitlistStatus.ACTIVE.value,
                )
                .order_by(WaitlistEntryModel.created_at, WaitlistEntryModel.id)
                .limit(limit)
            )
            entries = []
            for entry, customer, pet_name in self.session.execute(stmt).all():
                entries.append(
                    WaitlistEntry(
                        id=entry.id,
                        customer_id=entry.customer_id,
                        pet_id=entry.pet_id,
                        service_id=entry.service_id,
                        status=entry.status,
                        created_at=from_db_timestamp(entry.created_at),
                        notified_at=from_db_timestamp(entry.notified_at),
                        offer_expires_at=from_db_timestamp(entry.offer_expires_at),
                        customer=customer.to_domain() if customer is not None else None,
                        pet_name=pet_name,
                    )
                )
            return entries

        except SQLAlchemyError as e:
            logger.error(f"Error loading waitlist for service {service_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to load waitlist: {e}") from e

    def mark_notified(self, entry_id: str, notified_at: datetime, offer_expires_at: datetime) -> None:
        """Record that an offer went out for an entry.

        Raises:
            RecordNotFoundError: If the entry does not exist
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                update(WaitlistEntryModel)
                .where(WaitlistEntryModel.id == entry_id)
                .values(
                    status=WaitlistStatus.NOTIFIED.value,
                    notified_at=to_db_timestamp(notified_at),
                    offer_expires_at=to_db_timestamp(offer_expires_at),
                )
            )
            result = self.session.execute(stmt)

            if result.rowcount == 0:
                raise RecordNotFoundError(f"Waitlist entry not found: {entry_id}")

        except SQLAlchemyError as e:
            logger.error(f"Error updating waitlist entry {entry_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update waitlist entry: {e}") from e


class NotificationLogRepository:
    """Repository for notification_logs rows."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, log_id: str) -> Optional[NotificationLog]:
        try:
            model = self.session.get(NotificationLogModel, log_id)
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving notification log {log_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve notification log: {e}") from e

    def create(self, log: NotificationLog) -> NotificationLog:
        """Insert a new log row.

        Raises:
            DataIntegrityError: If the row violates a constraint
            PersistenceError: If database error occurs
        """
        try:
            model = NotificationLogModel(
                id=log.id,
                type=log.type.value,
                channel=log.channel.value,
                recipient=log.recipient,
                status=log.status.value,
                subject=log.subject,
                content=log.content,
                html_content=log.html_content,
                template_data=log.template_data,
                error_message=log.error_message,
                error_category=log.error_category.value if log.error_category else None,
                message_id=log.message_id,
                tracking_id=log.tracking_id,
                customer_id=log.customer_id,
                source_id=log.source_id,
                is_test=log.is_test,
                retry_count=log.retry_count,
                next_retry_at=to_db_timestamp(log.next_retry_at),
                created_at=to_db_timestamp(log.created_at),
                updated_at=to_db_timestamp(log.updated_at or log.created_at),
                sent_at=to_db_timestamp(log.sent_at),
            )
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            logger.error(f"Integrity error creating notification log {log.id}: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to create notification log: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating notification log {log.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create notification log: {e}") from e

    def _update(self, log_id: str, **values: Any) -> None:
        try:
            stmt = update(NotificationLogModel).where(NotificationLogModel.id == log_id).values(**values)
            result = self.session.execute(stmt)

            if result.rowcount == 0:
                raise RecordNotFoundError(f"Notification log not found: {log_id}")

        except IntegrityError as e:
            logger.error(f"Integrity error updating notification log {log_id}: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to update notification log: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error updating notification log {log_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update notification log: {e}") from e

    def mark_sent(self, log_id: str, message_id: Optional[str], sent_at: datetime) -> None:
        """Move a row to ``sent`` and clear any pending retry."""
        self._update(
            log_id,
            status=NotificationStatus.SENT.value,
            message_id=message_id,
            sent_at=to_db_timestamp(sent_at),
            error_message=None,
            error_category=None,
            next_retry_at=None,
            updated_at=to_db_timestamp(sent_at),
        )

    def mark_failed(
        self,
        log_id: str,
        error_message: str,
        error_category: ErrorCategory,
        retry_count: int,
        next_retry_at: Optional[datetime],
        now: datetime,
    ) -> None:
        """Move a row to ``failed`` with its retry schedule."""
        self._update(
            log_id,
            status=NotificationStatus.FAILED.value,
            error_message=error_message,
            error_category=error_category.value,
            retry_count=retry_count,
            next_retry_at=to_db_timestamp(next_retry_at),
            updated_at=to_db_timestamp(now),
        )

    def mark_pending(self, log_id: str, now: datetime) -> None:
        """Take a failed row out of the retry pool while it is being re-sent."""
        self._update(
            log_id,
            status=NotificationStatus.PENDING.value,
            updated_at=to_db_timestamp(now),
        )

    def cancel_retries(self, log_id: str, now: datetime) -> None:
        """Stop automatic retries for a row."""
        self._update(log_id, next_retry_at=None, updated_at=to_db_timestamp(now))

    def find_retryable(self, now: datetime, limit: int) -> List[NotificationLog]:
        """Failed, non-test rows due for retry and still under their type's max_retries.

        Ordered by next_retry_at, then created_at. Types without a settings
        row are not returned.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                select(NotificationLogModel)
                .join(
                    NotificationSettingsModel,
                    NotificationSettingsModel.notification_type == NotificationLogModel.type,
                )
                .where(
                    NotificationLogModel.status == NotificationStatus.FAILED.value,
                    NotificationLogModel.is_test.is_(False),
                    NotificationLogModel.next_retry_at.is_not(None),
                    NotificationLogModel.next_retry_at <= to_db_timestamp(now),
                    NotificationLogModel.retry_count < NotificationSettingsModel.max_retries,
                )
                .order_by(NotificationLogModel.next_retry_at, NotificationLogModel.created_at)
                .limit(limit)
            )
            return [model.to_domain() for model in self.session.execute(stmt).scalars().all()]

        except SQLAlchemyError as e:
            logger.error(f"Error loading retryable notifications: {e}", exc_info=True)
            raise PersistenceError(f"Failed to load retryable notifications: {e}") from e

    def exists_for_source(
        self,
        notification_type: NotificationType,
        source_id: str,
        since: Optional[datetime] = None,
    ) -> bool:
        """Whether any non-test row of ``notification_type`` exists for ``source_id``.

        Args:
            since: Only consider rows created at or after this time
        """
        try:
            stmt = select(NotificationLogModel.id).where(
                NotificationLogModel.type == notification_type.value,
                NotificationLogModel.source_id == source_id,
                NotificationLogModel.is_test.is_(False),
            )
            if since is not None:
                stmt = stmt.where(NotificationLogModel.created_at >= to_db_timestamp(since))

            return self.session.execute(stmt.limit(1)).first() is not None

        except SQLAlchemyError as e:
            logger.error(
                f"Error checking {notification_type.value} history for {source_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to check notification history: {e}") from e

    def list_filtered(
        self,
        notification_type: Optional[NotificationType] = None,
        channel: Optional[Channel] = None,
        status: Optional[NotificationStatus] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Tuple[List[NotificationLog], int]:
        """Page through log rows, newest first.

        Returns:
            Tuple of (rows on the requested page, total matching rows)
        """
        conditions = []
        if notification_type is not None:
            conditions.append(NotificationLogModel.type == notification_type.value)
        if channel is not None:
            conditions.append(NotificationLogModel.channel == channel.value)
        if status is not None:
            conditions.append(NotificationLogModel.status == status.value)
        if start is not None:
            conditions.append(NotificationLogModel.created_at >= to_db_timestamp(start))
        if end is not None:
            conditions.append(NotificationLogModel.created_at <= to_db_timestamp(end))
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    NotificationLogModel.recipient.ilike(pattern),
                    NotificationLogModel.subject.ilike(pattern),
                )
            )

        try:
            count_stmt = select(func.count()).select_from(NotificationLogModel).where(*conditions)
            total = self.session.execute(count_stmt).scalar_one()

            stmt = (
                select(NotificationLogModel)
                .where(*conditions)
                .order_by(NotificationLogModel.created_at.desc(), NotificationLogModel.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            rows = [model.to_domain() for model in self.session.execute(stmt).scalars().all()]
            return rows, total

        except SQLAlchemyError as e:
            logger.error(f"Error listing notification logs: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list notification logs: {e}") from e


class NotificationSettingsRepository:
    """Per-type settings, created with defaults on first reference."""

    def __init__(
        self,
        session: Session,
        defaults: Optional[Mapping[NotificationType, Dict[str, Any]]] = None,
    ):
        """Initialize repository.

        Args:
            session: SQLAlchemy session for database operations
            defaults: Configured per-type overrides of the built-in defaults
        """
        self.session = session
        self.defaults = defaults or {}

    def get_or_create(self, notification_type: NotificationType, now: datetime) -> NotificationSettings:
        """Return the settings row for a type, inserting defaults if missing.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(NotificationSettingsModel, notification_type.value)
            if model is None:
                settings = default_settings(notification_type, self.defaults.get(notification_type))
                model = NotificationSettingsModel.from_domain(settings, now)
                self.session.add(model)
                self.session.flush()
                logger.info(
                    f"Created default notification settings for {notification_type.value}",
                    extra={"event": "settings.created", "notification_type": notification_type.value},
                )
            return model.to_domain()

        except SQLAlchemyError as e:
            logger.error(f"Error loading settings for {notification_type.value}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to load notification settings: {e}") from e

    def list_all(self, now: datetime) -> List[NotificationSettings]:
        """Settings for every known type, in declaration order."""
        return [self.get_or_create(notification_type, now) for notification_type in NotificationType]

    def update(
        self, notification_type: NotificationType, changes: Dict[str, Any], now: datetime
    ) -> NotificationSettings:
        """Apply validated field changes and return the updated settings."""
        self.get_or_create(notification_type, now)
        try:
            model = self.session.get(NotificationSettingsModel, notification_type.value)
            for field_name, value in changes.items():
                setattr(model, field_name, value)
            model.updated_at = to_db_timestamp(now)
            self.session.flush()
            return model.to_domain()

        except SQLAlchemyError as e:
            logger.error(f"Error updating settings for {notification_type.value}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update notification settings: {e}") from e

    def increment_sent(self, notification_type: NotificationType, now: datetime) -> None:
        """Atomically bump total_sent_count and set last_sent_at."""
        self.get_or_create(notification_type, now)
        stamp = to_db_timestamp(now)
        self._execute_counter_update(
            notification_type,
            total_sent_count=NotificationSettingsModel.total_sent_count + 1,
            last_sent_at=stamp,
            updated_at=stamp,
        )

    def increment_failed(self, notification_type: NotificationType, now: datetime) -> None:
        """Atomically bump total_failed_count."""
        self.get_or_create(notification_type, now)
        self._execute_counter_update(
            notification_type,
            total_failed_count=NotificationSettingsModel.total_failed_count + 1,
            updated_at=to_db_timestamp(now),
        )

    def _execute_counter_update(self, notification_type: NotificationType, **values: Any) -> None:
        try:
            stmt = (
                update(NotificationSettingsModel)
                .where(NotificationSettingsModel.notification_type == notification_type.value)
                .values(**values)
            )
            self.session.execute(stmt)

        except SQLAlchemyError as e:
            logger.error(f"Error updating counters for {notification_type.value}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update notification counters: {e}") from e


class NotificationTemplateRepository:
    """Editable templates that override the packaged defaults."""

    def __init__(self, session: Session):
        self.session = session

    def get_active(
        self, notification_type: NotificationType, channel: Channel
    ) -> Optional[NotificationTemplate]:
        """Highest-version active template for (type, channel), or None."""
        try:
            stmt = (
                select(NotificationTemplateModel)
                .where(
                    NotificationTemplateModel.type == notification_type.value,
                    NotificationTemplateModel.channel == channel.value,
                    NotificationTemplateModel.is_active.is_(True),
                )
                .order_by(NotificationTemplateModel.version.desc())
                .limit(1)
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(
                f"Error loading template for {notification_type.value}/{channel.value}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to load notification template: {e}") from e


class JobLockRepository:
    """Named, expiring job locks.

    ``acquire`` may roll back the session on contention, so it must be the
    only work done in its session.
    """

    def __init__(self, session: Session):
        self.session = session

    def acquire(self, name: str, owner: str, now: datetime, expires_at: datetime) -> bool:
        """Take the lock if it is free or its previous holder's lease expired.

        Returns:
            True if ``owner`` now holds the lock, False if someone else does
        """
        now_str = to_db_timestamp(now)
        values = {
            "owner": owner,
            "acquired_at": now_str,
            "expires_at": to_db_timestamp(expires_at),
        }

        try:
            takeover = (
                update(JobLockModel)
                .where(JobLockModel.name == name, JobLockModel.expires_at <= now_str)
                .values(**values)
            )
            if self.session.execute(takeover).rowcount == 1:
                logger.info(
                    f"Took over expired job lock {name}",
                    extra={"event": "job_lock.taken_over", "lock_name": name},
                )
                return True

            self.session.add(JobLockModel(name=name, **values))
            self.session.flush()
            return True

        except IntegrityError:
            self.session.rollback()
            return False
        except SQLAlchemyError as e:
            logger.error(f"Error acquiring job lock {name}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to acquire job lock: {e}") from e

    def release(self, name: str, owner: str) -> bool:
        """Delete the lock row if ``owner`` still holds it."""
        try:
            stmt = delete(JobLockModel).where(JobLockModel.name == name, JobLockModel.owner == owner)
            return self.session.execute(stmt).rowcount > 0

        except SQLAlchemyError as e:
            logger.error(f"Error releasing job lock {name}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to release job lock: {e}") from e
