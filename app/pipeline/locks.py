"""Datastore-backed job locks shared by every process running the jobs."""

from contextlib import contextmanager
from datetime import timedelta
from typing import Callable, Iterator
from uuid import uuid4

from app.logging import get_logger
from app.persistence import JobLockRepository, PersistenceError, get_session
from app.utils.timestamps import utc_now

logger = get_logger(__name__, component="pipeline")

RETRY_LOCK = "notifications.retry"
REMINDERS_LOCK = "notifications.reminders"
RETENTION_LOCK = "notifications.retention"


class JobLock:
    """
    Named lock held in the ``job_locks`` table.

    A holder that dies without releasing keeps the lock only until its lease
    (``ttl_seconds``) runs out; the next caller then takes it over.
    """

    def __init__(self, name: str, ttl_seconds: int = 900, clock: Callable = utc_now):
        self.name = name
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock

    def acquire(self) -> str:
        """
        Try to take the lock.

        Returns:
            The owner token to pass to ``release``, or an empty string when the
            lock is held by someone else

        Raises:
            PersistenceError: If the lock table cannot be read or written
        """
        owner = uuid4().hex
        now = self.clock()
        with get_session() as session:
            acquired = JobLockRepository(session).acquire(self.name, owner, now, now + self.ttl)

        if not acquired:
            logger.info(
                f"Job lock {self.name} is held by another run",
                extra={"event": "job_lock.busy", "lock_name": self.name},
            )
            return ""

        logger.debug(
            f"Acquired job lock {self.name}",
            extra={"event": "job_lock.acquired", "lock_name": self.name, "owner": owner},
        )
        return owner

    def release(self, owner: str) -> None:
        """Give the lock back. Release failures are logged, the lease expires on its own."""
        try:
            with get_session() as session:
                released = JobLockRepository(session).release(self.name, owner)
        except PersistenceError as e:
            logger.warning(
                f"Could not release job lock {self.name}: {e}",
                extra={"event": "job_lock.release_failed", "lock_name": self.name},
            )
            return

        if not released:
            logger.warning(
                f"Job lock {self.name} was no longer held by this run",
                extra={"event": "job_lock.lost", "lock_name": self.name},
            )

    @contextmanager
    def held(self) -> Iterator[bool]:
        """
        Hold the lock for the duration of the block.

        Yields True when the lock was acquired, False when another run holds
        it. The lock is released on exit whatever happens inside the block.
        """
        owner = self.acquire()
        try:
            yield bool(owner)
        finally:
            if owner:
                self.release(owner)
