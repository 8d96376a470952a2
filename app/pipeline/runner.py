"""Job runner: feeds scanner decisions to the Dispatch Engine and tallies results."""

import time
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional
from uuid import uuid4

from app.domain.eligibility import Candidate, EligibilityDecision, Eligible, NotYetDue, Skipped
from app.domain.models import NotificationType
from app.eligibility import (
    AppointmentEventScanner,
    AppointmentReminderScanner,
    RetentionReminderScanner,
    WaitlistOfferScanner,
)
from app.logging import get_logger
from app.logging.context import log_context
from app.notifications.service import NotificationService
from app.persistence import PersistenceError, WaitlistRepository, get_session
from app.utils.timestamps import utc_now

from .locks import REMINDERS_LOCK, RETENTION_LOCK, JobLock
from .models import SKIPPED_MESSAGE, JobRunResult

logger = get_logger(__name__, component="pipeline")


class NotificationJobRunner:
    """
    Runs the scan-and-dispatch jobs.

    Each job materialises the scanner's full decision list first, then
    dispatches candidates one at a time in scanner order. A candidate counts
    as sent when at least one of its channels succeeded.
    """

    def __init__(
        self,
        service: NotificationService,
        reminder_scanner: AppointmentReminderScanner,
        retention_scanner: RetentionReminderScanner,
        waitlist_scanner: WaitlistOfferScanner,
        booking_scanner: AppointmentEventScanner,
        cancellation_scanner: AppointmentEventScanner,
        lock_ttl_seconds: int = 900,
        clock: Callable = utc_now,
    ):
        """
        Initialize the job runner.

        Args:
            service: Dispatch Engine used for every candidate
            reminder_scanner: Scanner for appointment reminders
            retention_scanner: Scanner for retention reminders
            waitlist_scanner: Scanner for waitlist offers
            booking_scanner: Scanner for booking confirmations
            cancellation_scanner: Scanner for cancellation notices
            lock_ttl_seconds: Lease of the per-job locks
            clock: Source of "now"
        """
        self.service = service
        self.reminder_scanner = reminder_scanner
        self.retention_scanner = retention_scanner
        self.waitlist_scanner = waitlist_scanner
        self.booking_scanner = booking_scanner
        self.cancellation_scanner = cancellation_scanner
        self.clock = clock
        self.reminders_lock = JobLock(REMINDERS_LOCK, lock_ttl_seconds, clock)
        self.retention_lock = JobLock(RETENTION_LOCK, lock_ttl_seconds, clock)

    def run_reminders(self, now: Optional[datetime] = None) -> JobRunResult:
        """Send appointment reminders for appointments about a day out."""
        now = now or self.clock()
        return self._run_locked("reminders", self.reminders_lock, now, lambda: self.reminder_scanner.scan(now))

    def run_retention(self, now: Optional[datetime] = None) -> JobRunResult:
        """Send retention reminders to owners of pets overdue for grooming."""
        now = now or self.clock()
        return self._run_locked("retention", self.retention_lock, now, lambda: self.retention_scanner.scan(now))

    def notify_waitlist(
        self,
        service_id: str,
        available_date: date,
        available_time: str,
        max_notifications: int = 1,
        now: Optional[datetime] = None,
    ) -> JobRunResult:
        """
        Offer an opened slot to the longest-waiting customers of a service.

        Entries whose offer went out on at least one channel become
        ``notified`` with an offer expiry.
        """
        now = now or self.clock()
        expires_at = now + timedelta(hours=self.waitlist_scanner.expiration_hours)

        def mark_notified(candidate: Candidate) -> None:
            try:
                with get_session() as session:
                    WaitlistRepository(session).mark_notified(candidate.source_id, now, expires_at)
            except PersistenceError as e:
                logger.error(
                    f"Offer sent but waitlist entry {candidate.source_id} could not be marked notified: {e}",
                    extra={"event": "waitlist.mark_notified.failed", "source_id": candidate.source_id},
                )

        with log_context(run_id=uuid4().hex, job="waitlist"):
            return self._run(
                "waitlist",
                now,
                lambda: self.waitlist_scanner.scan_slot(
                    service_id, available_date, available_time, now, max_notifications
                ),
                on_sent=mark_notified,
            )

    def send_booking_confirmation(self, appointment_id: str, now: Optional[datetime] = None) -> JobRunResult:
        """
        Raises:
            RecordNotFoundError: If the appointment does not exist
        """
        now = now or self.clock()
        with log_context(run_id=uuid4().hex, job=NotificationType.BOOKING_CONFIRMATION.value):
            return self._run(
                "booking_confirmation", now, lambda: [self.booking_scanner.decide(appointment_id, now)]
            )

    def send_cancellation_notice(self, appointment_id: str, now: Optional[datetime] = None) -> JobRunResult:
        now = now or self.clock()
        with log_context(run_id=uuid4().hex, job=NotificationType.APPOINTMENT_CANCELLED.value):
            return self._run(
                "appointment_cancelled", now, lambda: [self.cancellation_scanner.decide(appointment_id, now)]
            )

    def _run_locked(
        self,
        job: str,
        lock: JobLock,
        now: datetime,
        scan: Callable[[], List[EligibilityDecision]],
    ) -> JobRunResult:
        with log_context(run_id=uuid4().hex, job=job):
            with lock.held() as acquired:
                if not acquired:
                    logger.info(
                        f"{job} run skipped: previous run still in progress",
                        extra={"event": "job.run.skipped", "reason": "lock_held"},
                    )
                    return JobRunResult(job=job, timestamp=now, skipped_run=True, message=SKIPPED_MESSAGE)

                return self._run(job, now, scan)

    def _run(
        self,
        job: str,
        now: datetime,
        scan: Callable[[], List[EligibilityDecision]],
        on_sent: Optional[Callable[[Candidate], None]] = None,
    ) -> JobRunResult:
        started = time.monotonic()
        result = JobRunResult(job=job, timestamp=now)

        logger.info(f"{job} run started", extra={"event": "job.run.started"})

        # Scanner errors propagate before anything is dispatched
        decisions = scan()

        for decision in decisions:
            if isinstance(decision, Skipped):
                result.skipped += 1
                logger.debug(
                    f"Skipped {decision.source_id}: {decision.reason}",
                    extra={"event": "job.candidate.skipped", "source_id": decision.source_id},
                )
                continue
            if isinstance(decision, NotYetDue):
                result.skipped += 1
                result.not_due += 1
                continue
            if not isinstance(decision, Eligible):
                continue

            result.processed += 1
            outcomes = self.service.dispatch_all(decision.candidate)
            if any(outcome.success for outcome in outcomes):
                result.sent += 1
                if on_sent is not None:
                    on_sent(decision.candidate)
            else:
                result.failed += 1

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"{job} run completed",
            extra={
                "event": "job.run.completed",
                "processed": result.processed,
                "sent": result.sent,
                "failed": result.failed,
                "skipped": result.skipped,
                "not_due": result.not_due,
                "duration_ms": result.duration_ms,
            },
        )
        return result
