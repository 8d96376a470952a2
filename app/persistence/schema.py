"""Database schema definition and ORM models.

This module defines SQLAlchemy ORM models for the database schema and provides
conversion methods between ORM models and domain models.

Timestamps are stored as fixed-width ISO 8601 UTC strings
(``YYYY-MM-DDTHH:MM:SS.ffffffZ``) so range filters and ordering work with
plain string comparison on every backend.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    inspect,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from app.domain.models import (
    Breed,
    Customer,
    NotificationLog,
    NotificationSettings,
    NotificationTemplate,
)

logger = logging.getLogger(__name__)

Base = declarative_base()

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class CustomerModel(Base):
    """ORM model for customers table."""

    __tablename__ = "customers"

    id = Column(String(36), primary_key=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    # marketing_opt_out, marketing_enabled, email_appointment_reminders, ...
    preferences = Column(JSON, nullable=False, default=dict)
    created_at = Column(String(50), nullable=False)

    def to_domain(self) -> Customer:
        return Customer(
            id=self.id,
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            phone=self.phone,
            preferences=self.preferences or {},
        )


class BreedModel(Base):
    """ORM model for breeds table."""

    __tablename__ = "breeds"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    grooming_frequency_weeks = Column(Integer, nullable=True)

    def to_domain(self) -> Breed:
        return Breed(
            id=self.id,
            name=self.name,
            grooming_frequency_weeks=self.grooming_frequency_weeks,
        )


class PetModel(Base):
    """ORM model for pets table."""

    __tablename__ = "pets"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(36), ForeignKey("customers.id"), nullable=True)
    breed_id = Column(String(36), ForeignKey("breeds.id"), nullable=True)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_pets_active_name", "is_active", "name"),)


class ServiceModel(Base):
    """ORM model for grooming services table."""

    __tablename__ = "services"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)


class AppointmentModel(Base):
    """ORM model for appointments table."""

    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False)
    pet_id = Column(String(36), ForeignKey("pets.id"), nullable=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True)
    scheduled_at = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)
    total_price = Column(Float, nullable=True)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        Index("idx_appointments_scheduled", "scheduled_at", "status"),
        Index("idx_appointments_pet_status", "pet_id", "status"),
    )


class WaitlistEntryModel(Base):
    """ORM model for waitlist_entries table."""

    __tablename__ = "waitlist_entries"

    id = Column(String(36), primary_key=True)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=False)
    pet_id = Column(String(36), ForeignKey("pets.id"), nullable=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(String(50), nullable=False)
    notified_at = Column(String(50), nullable=True)
    offer_expires_at = Column(String(50), nullable=True)

    __table_args__ = (Index("idx_waitlist_service_status", "service_id", "status", "created_at"),)


class NotificationSettingsModel(Base):
    """ORM model for notification_settings table (one row per type)."""

    __tablename__ = "notification_settings"

    notification_type = Column(String(50), primary_key=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    sms_enabled = Column(Boolean, nullable=False, default=True)
    schedule_enabled = Column(Boolean, nullable=False, default=False)
    schedule_cron = Column(String(100), nullable=True)
    max_retries = Column(Integer, nullable=False, default=2)
    retry_delays_seconds = Column(JSON, nullable=False, default=list)
    last_sent_at = Column(String(50), nullable=True)
    total_sent_count = Column(Integer, nullable=False, default=0)
    total_failed_count = Column(Integer, nullable=False, default=0)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    def to_domain(self) -> NotificationSettings:
        return NotificationSettings(
            notification_type=self.notification_type,
            email_enabled=self.email_enabled,
            sms_enabled=self.sms_enabled,
            schedule_enabled=self.schedule_enabled,
            schedule_cron=self.schedule_cron,
            max_retries=self.max_retries,
            retry_delays_seconds=list(self.retry_delays_seconds or []),
            last_sent_at=from_db_timestamp(self.last_sent_at),
            total_sent_count=self.total_sent_count or 0,
            total_failed_count=self.total_failed_count or 0,
            created_at=from_db_timestamp(self.created_at),
            updated_at=from_db_timestamp(self.updated_at),
        )

    @classmethod
    def from_domain(cls, settings: NotificationSettings, now: datetime) -> "NotificationSettingsModel":
        return cls(
            notification_type=settings.notification_type.value,
            email_enabled=settings.email_enabled,
            sms_enabled=settings.sms_enabled,
            schedule_enabled=settings.schedule_enabled,
            schedule_cron=settings.schedule_cron,
            max_retries=settings.max_retries,
            retry_delays_seconds=list(settings.retry_delays_seconds),
            last_sent_at=to_db_timestamp(settings.last_sent_at),
            total_sent_count=settings.total_sent_count,
            total_failed_count=settings.total_failed_count,
            created_at=to_db_timestamp(now),
            updated_at=to_db_timestamp(now),
        )


class NotificationTemplateModel(Base):
    """ORM model for notification_templates table.

    Rows override the packaged default template for a (type, channel) pair.
    """

    __tablename__ = "notification_templates"

    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False, unique=True)
    type = Column(String(50), nullable=False)
    channel = Column(String(10), nullable=False)
    subject_template = Column(Text, nullable=True)
    html_template = Column(Text, nullable=True)
    text_template = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=False)

    __table_args__ = (Index("idx_templates_type_channel", "type", "channel", "is_active"),)

    def to_domain(self) -> NotificationTemplate:
        return NotificationTemplate(
            id=self.id,
            name=self.name,
            type=self.type,
            channel=self.channel,
            subject_template=self.subject_template,
            html_template=self.html_template,
            text_template=self.text_template,
            is_active=self.is_active,
            version=self.version,
        )


class NotificationLogModel(Base):
    """ORM model for notification_logs table.

    One row per logical send attempt. Retries reuse the row and bump
    ``retry_count``.
    """

    __tablename__ = "notification_logs"

    id = Column(String(36), primary_key=True)
    type = Column(String(50), nullable=False)
    channel = Column(String(10), nullable=False)
    recipient = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False)
    subject = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    html_content = Column(Text, nullable=True)
    template_data = Column(JSON, nullable=False, default=dict)
    error_message = Column(Text, nullable=True)
    error_category = Column(String(20), nullable=True)
    message_id = Column(String(255), nullable=True, unique=True)
    tracking_id = Column(String(255), nullable=True)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=True)
    source_id = Column(String(36), nullable=True)
    is_test = Column(Boolean, nullable=False, default=False)
    retry_count = Column(Integer, nullable=False, default=0)
    next_retry_at = Column(String(50), nullable=True)
    created_at = Column(String(50), nullable=False)
    updated_at = Column(String(50), nullable=True)
    sent_at = Column(String(50), nullable=True)
    delivered_at = Column(String(50), nullable=True)
    clicked_at = Column(String(50), nullable=True)

    __table_args__ = (
        Index("idx_logs_retry", "status", "next_retry_at"),
        Index("idx_logs_type_source", "type", "source_id", "created_at"),
        Index("idx_logs_created", "created_at"),
    )

    def to_domain(self) -> NotificationLog:
        return NotificationLog(
            id=self.id,
            type=self.type,
            channel=self.channel,
            recipient=self.recipient,
            status=self.status,
            subject=self.subject,
            content=self.content,
            html_content=self.html_content,
            template_data=self.template_data or {},
            error_message=self.error_message,
            error_category=self.error_category,
            message_id=self.message_id,
            tracking_id=self.tracking_id,
            customer_id=self.customer_id,
            source_id=self.source_id,
            is_test=self.is_test,
            retry_count=self.retry_count or 0,
            next_retry_at=from_db_timestamp(self.next_retry_at),
            created_at=from_db_timestamp(self.created_at),
            updated_at=from_db_timestamp(self.updated_at),
            sent_at=from_db_timestamp(self.sent_at),
            delivered_at=from_db_timestamp(self.delivered_at),
            clicked_at=from_db_timestamp(self.clicked_at),
        )


class JobLockModel(Base):
    """ORM model for job_locks table.

    A row exists while a job holds its lock; ``expires_at`` lets another
    process take over a lock whose holder died.
    """

    __tablename__ = "job_locks"

    name = Column(String(100), primary_key=True)
    owner = Column(String(64), nullable=False)
    acquired_at = Column(String(50), nullable=False)
    expires_at = Column(String(50), nullable=False)


def to_db_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime as ISO 8601 string for database storage.

    Args:
        dt: Datetime object (naive values are treated as UTC)

    Returns:
        ISO 8601 formatted string or None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt.strftime(TIMESTAMP_FORMAT)


def from_db_timestamp(dt_str: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO 8601 string back into an aware UTC datetime."""
    if not dt_str:
        return None

    dt_str = dt_str.rstrip("Z")
    try:
        dt = datetime.strptime(dt_str, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(dt_str, "%Y-%m-%dT%H:%M:%S")

    return dt.replace(tzinfo=timezone.utc)


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent).

    Args:
        engine: SQLAlchemy engine instance
    """
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)
        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(tables)}")
    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
