"""Wiring of the pipeline components from configuration."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from app.config.environment import EnvironmentConfig
from app.config.models import AppConfig
from app.domain.models import NotificationType
from app.eligibility import (
    AppointmentEventScanner,
    AppointmentReminderScanner,
    RetentionReminderScanner,
    WaitlistOfferScanner,
)
from app.logging import get_logger
from app.notifications import (
    EmailTransport,
    MockEmailTransport,
    MockSMSTransport,
    NotificationService,
    OutcomeRecorder,
    SMSTransport,
    SMTPEmailTransport,
    TemplateRenderer,
    TwilioSMSTransport,
)
from app.pipeline import JobLock, NotificationJobRunner, RetryProcessor, RETRY_LOCK
from app.scheduler import SchedulerService
from app.utils.timestamps import utc_now

logger = get_logger(__name__, component="runtime")


@dataclass
class Services:
    """Everything the HTTP layer, the scheduler and the CLI need."""

    app_config: AppConfig
    env_config: EnvironmentConfig
    notification_service: NotificationService
    runner: NotificationJobRunner
    retry_processor: RetryProcessor
    email_transport: EmailTransport
    sms_transport: SMSTransport
    scheduler: Optional[SchedulerService] = None


def build_transports(app_config: AppConfig, env_config: EnvironmentConfig):
    """Mock transports in mock mode, SMTP and Twilio otherwise."""
    if env_config.use_mocks:
        mock = app_config.mock
        logger.info(
            "Using mock transports",
            extra={"event": "transports.mock", "failure_rate": mock.failure_rate},
        )
        return (
            MockEmailTransport(mock.failure_rate, mock.min_latency_ms, mock.max_latency_ms),
            MockSMSTransport(mock.failure_rate, mock.min_latency_ms, mock.max_latency_ms),
        )

    return SMTPEmailTransport(env_config), TwilioSMSTransport(env_config)


def build_services(
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    email_transport: Optional[EmailTransport] = None,
    sms_transport: Optional[SMSTransport] = None,
    clock: Callable = utc_now,
) -> Services:
    """
    Assemble the pipeline.

    Args:
        app_config: Application configuration
        env_config: Environment configuration
        email_transport: Overrides the configured email transport
        sms_transport: Overrides the configured SMS transport
        clock: Source of "now" shared by every component
    """
    if email_transport is None or sms_transport is None:
        default_email, default_sms = build_transports(app_config, env_config)
        email_transport = email_transport or default_email
        sms_transport = sms_transport or default_sms

    defaults = app_config.settings_overrides()
    jobs = app_config.jobs
    timezone = app_config.business.timezone

    service = NotificationService(
        renderer=TemplateRenderer(app_config.business.template_context()),
        email_transport=email_transport,
        sms_transport=sms_transport,
        recorder=OutcomeRecorder(defaults),
        clock=clock,
    )

    runner = NotificationJobRunner(
        service=service,
        reminder_scanner=AppointmentReminderScanner(
            window_start=timedelta(hours=jobs.reminder_window_start_hours),
            window_end=timedelta(hours=jobs.reminder_window_end_hours),
            timezone=timezone,
            settings_defaults=defaults,
        ),
        retention_scanner=RetentionReminderScanner(
            app_url=env_config.app_url,
            cooldown=timedelta(days=jobs.retention_cooldown_days),
            default_frequency_weeks=jobs.default_grooming_frequency_weeks,
            settings_defaults=defaults,
        ),
        waitlist_scanner=WaitlistOfferScanner(
            app_url=env_config.app_url,
            expiration_hours=jobs.waitlist_offer_expiration_hours,
            settings_defaults=defaults,
        ),
        booking_scanner=AppointmentEventScanner(
            NotificationType.BOOKING_CONFIRMATION, timezone=timezone, settings_defaults=defaults
        ),
        cancellation_scanner=AppointmentEventScanner(
            NotificationType.APPOINTMENT_CANCELLED, timezone=timezone, settings_defaults=defaults
        ),
        lock_ttl_seconds=jobs.lock_ttl_seconds,
        clock=clock,
    )

    retry_processor = RetryProcessor(
        service,
        batch_size=jobs.retry_batch_size,
        lock=JobLock(RETRY_LOCK, jobs.lock_ttl_seconds, clock),
        clock=clock,
    )

    return Services(
        app_config=app_config,
        env_config=env_config,
        notification_service=service,
        runner=runner,
        retry_processor=retry_processor,
        email_transport=email_transport,
        sms_transport=sms_transport,
    )


def build_scheduler(services: Services) -> SchedulerService:
    """Scheduler for the scan jobs and the retry cadence; attached to ``services``."""
    scheduler_config = services.app_config.scheduler
    scheduler = SchedulerService(
        scan_jobs={
            NotificationType.APPOINTMENT_REMINDER: services.runner.run_reminders,
            NotificationType.RETENTION_REMINDER: services.runner.run_retention,
        },
        retry_job=services.retry_processor.run,
        retry_cron=scheduler_config.retry_cron,
        timezone=scheduler_config.timezone,
        settings_defaults=services.app_config.settings_overrides(),
    )
    services.scheduler = scheduler
    return scheduler
