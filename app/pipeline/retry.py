"""Retry Processor: re-attempts failed notifications that are due again."""

import time
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from app.logging import get_logger
from app.logging.context import log_context
from app.notifications.service import NotificationService
from app.persistence import NotificationLogRepository, get_session
from app.utils.timestamps import utc_now

from .locks import RETRY_LOCK, JobLock
from .models import SKIPPED_MESSAGE, RetryRunResult

logger = get_logger(__name__, component="retry")


class RetryProcessor:
    """
    Picks up failed, non-exhausted log rows whose ``next_retry_at`` has passed
    and hands each one back to the Dispatch Engine.

    Only one run is active at a time across all processes (``notifications.retry``
    job lock). A concurrent call returns a skipped result immediately.
    """

    def __init__(
        self,
        service: NotificationService,
        batch_size: int = 100,
        lock: Optional[JobLock] = None,
        clock: Callable = utc_now,
    ):
        self.service = service
        self.batch_size = batch_size
        self.clock = clock
        self.lock = lock or JobLock(RETRY_LOCK, clock=clock)

    def run(self, now: Optional[datetime] = None) -> RetryRunResult:
        """
        Process one batch of due retries.

        Args:
            now: As-of time used to select due rows (defaults to the clock)

        Returns:
            RetryRunResult with per-row errors

        Raises:
            PersistenceError: If the lock or the batch cannot be loaded; no row
                is retried in that case
        """
        started = time.monotonic()
        now = now or self.clock()
        result = RetryRunResult(timestamp=now)

        with log_context(run_id=uuid4().hex, job="retry"):
            with self.lock.held() as acquired:
                if not acquired:
                    logger.info(
                        "Retry run skipped: previous run still in progress",
                        extra={"event": "retry.run.skipped", "reason": "lock_held"},
                    )
                    result.skipped = True
                    result.message = SKIPPED_MESSAGE
                    return result

                with get_session() as session:
                    batch = NotificationLogRepository(session).find_retryable(now, self.batch_size)

                logger.info(
                    f"Retrying {len(batch)} failed notifications",
                    extra={"event": "retry.run.started", "batch_size": len(batch)},
                )

                for log in batch:
                    result.processed += 1
                    outcome = self.service.retry(log)
                    if outcome.success:
                        result.succeeded += 1
                    else:
                        result.failed += 1
                        result.add_error(log.id, outcome.error or "Unknown error")

            result.duration_ms = int((time.monotonic() - started) * 1000)
            logger.info(
                "Retry run completed",
                extra={
                    "event": "retry.run.completed",
                    "processed": result.processed,
                    "succeeded": result.succeeded,
                    "failed": result.failed,
                    "duration_ms": result.duration_ms,
                },
            )
            return result
