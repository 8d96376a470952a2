"""Scheduler service that triggers the notification jobs in-process."""

from typing import Any, Callable, Dict, Mapping, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from app.domain.models import NotificationType
from app.logging import get_logger
from app.persistence import NotificationSettingsRepository, PersistenceError, get_session
from app.utils.timestamps import utc_now

logger = get_logger(__name__, component="scheduler")

RETRY_JOB_ID = "notifications.retry"


def scan_job_id(notification_type: NotificationType) -> str:
    return f"notifications.{notification_type.value}"


class SchedulerService:
    """
    Wraps APScheduler to run the scan jobs on each type's ``schedule_cron``
    and the Retry Processor on a fixed cadence.

    Scan jobs follow the persisted settings: call ``sync_jobs`` after the
    settings change so that enabled types are (re)scheduled and disabled ones
    removed.
    """

    def __init__(
        self,
        scan_jobs: Mapping[NotificationType, Callable[[], Any]],
        retry_job: Callable[[], Any],
        retry_cron: str = "*/5 * * * *",
        timezone: str = "UTC",
        settings_defaults: Optional[Mapping[NotificationType, Dict[str, Any]]] = None,
    ):
        """
        Initialize the scheduler service.

        Args:
            scan_jobs: Job callable per scheduled notification type
            retry_job: Callable that runs the Retry Processor once
            retry_cron: Crontab expression for the retry cadence
            timezone: Timezone the cron expressions are evaluated in
            settings_defaults: Defaults for settings rows created on first read
        """
        self.scan_jobs = dict(scan_jobs)
        self.retry_job = retry_job
        self.retry_cron = retry_cron
        self.timezone = timezone
        self.settings_defaults = settings_defaults or {}

        self.scheduler = BackgroundScheduler(
            job_defaults={
                "max_instances": 1,  # Prevent overlapping runs
                "coalesce": True,  # If runs were missed, only execute once
                "misfire_grace_time": 60,
            },
            timezone=timezone,
        )

    def start(self) -> None:
        """Register the retry job and the enabled scan jobs, then start."""
        self.scheduler.add_job(
            func=self._safe(RETRY_JOB_ID, self.retry_job),
            trigger=CronTrigger.from_crontab(self.retry_cron, timezone=self.timezone),
            id=RETRY_JOB_ID,
            name="Notification retries",
            replace_existing=True,
        )
        self.sync_jobs()
        self.scheduler.start()

        logger.info(
            f"Scheduler started with {len(self.scheduler.get_jobs())} jobs",
            extra={
                "event": "scheduler.started",
                "retry_cron": self.retry_cron,
                "jobs": [job.id for job in self.scheduler.get_jobs()],
            },
        )

    def sync_jobs(self) -> None:
        """
        Bring the scan jobs in line with the persisted settings.

        Settings that cannot be read leave the current jobs untouched.
        """
        try:
            with get_session() as session:
                all_settings = NotificationSettingsRepository(session, self.settings_defaults).list_all(utc_now())
        except PersistenceError as e:
            logger.error(
                f"Could not load notification settings, keeping current schedule: {e}",
                extra={"event": "scheduler.sync.failed"},
            )
            return

        for settings in all_settings:
            job = self.scan_jobs.get(settings.notification_type)
            if job is None:
                continue

            job_id = scan_job_id(settings.notification_type)
            if settings.schedule_enabled and settings.schedule_cron:
                trigger = CronTrigger.from_crontab(settings.schedule_cron, timezone=self.timezone)
                if self.scheduler.get_job(job_id) is not None:
                    # Also covers jobs still pending before start()
                    self.scheduler.reschedule_job(job_id, trigger=trigger)
                else:
                    self.scheduler.add_job(
                        func=self._safe(job_id, job),
                        trigger=trigger,
                        id=job_id,
                        name=f"{settings.notification_type.value} scan",
                    )
                logger.info(
                    f"Scheduled {job_id} at '{settings.schedule_cron}'",
                    extra={"event": "scheduler.job.scheduled", "job_id": job_id, "cron": settings.schedule_cron},
                )
            elif self.scheduler.get_job(job_id) is not None:
                self.scheduler.remove_job(job_id)
                logger.info(
                    f"Unscheduled {job_id}",
                    extra={"event": "scheduler.job.removed", "job_id": job_id},
                )

    def shutdown(self, wait: bool = False) -> None:
        """
        Shutdown the scheduler gracefully.

        Args:
            wait: If True, wait for running jobs to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def is_running(self) -> bool:
        return self.scheduler.running

    @staticmethod
    def _safe(job_id: str, job: Callable[[], Any]) -> Callable[[], None]:
        def run() -> None:
            try:
                job()
            except Exception as e:
                logger.error(
                    f"Scheduled job {job_id} failed: {e}",
                    exc_info=True,
                    extra={"event": "scheduler.job.failed", "job_id": job_id},
                )

        return run
