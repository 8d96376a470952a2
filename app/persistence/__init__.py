"""Persistence layer for the notification pipeline.

Public API:
    # Database initialization and session management
    - init_database(database_url: str) -> None
    - get_session() -> ContextManager[Session]
    - close_database() -> None

    # Repository classes
    - AppointmentRepository, PetRepository, WaitlistRepository: scanner reads
    - NotificationLogRepository: outcome rows, retry selection, log viewer
    - NotificationSettingsRepository: per-type policy and counters
    - NotificationTemplateRepository: template overrides
    - JobLockRepository: named expiring job locks

    # Exceptions
    - PersistenceError and its subclasses

Example usage:
    >>> from app.persistence import init_database, get_session, NotificationLogRepository
    >>> init_database("sqlite:///./data/puppy_day.db")
    >>> with get_session() as session:
    ...     log = NotificationLogRepository(session).get("3f2a...")
"""

# Database initialization and session management
from .database import close_database, get_session, init_database

# Repository classes
from .repositories import (
    AppointmentRepository,
    JobLockRepository,
    NotificationLogRepository,
    NotificationSettingsRepository,
    NotificationTemplateRepository,
    PetRepository,
    WaitlistRepository,
)

# Exceptions
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
    RecordNotFoundError,
)

__all__ = [
    "init_database",
    "get_session",
    "close_database",
    "AppointmentRepository",
    "JobLockRepository",
    "NotificationLogRepository",
    "NotificationSettingsRepository",
    "NotificationTemplateRepository",
    "PetRepository",
    "WaitlistRepository",
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
]
