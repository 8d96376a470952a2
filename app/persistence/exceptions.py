"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError. The Eligibility
Scanner lets them propagate (a failed scan aborts the job); the Dispatch
Engine converts them into failed outcomes.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when the database cannot be initialized or is not initialized yet.

    Examples:
    - Invalid database URL
    - Database file not accessible
    - get_session() called before init_database()
    """

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when an operation requires a row that does not exist.

    Optional lookups return None instead.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised on constraint violations (unique message_id, foreign keys, ...)."""

    pass
