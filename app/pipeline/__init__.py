"""Notification jobs: scan-and-dispatch runs, retries and their job locks."""

from .locks import REMINDERS_LOCK, RETENTION_LOCK, RETRY_LOCK, JobLock
from .models import JobRunResult, RetryRunResult
from .retry import RetryProcessor
from .runner import NotificationJobRunner

__all__ = [
    "NotificationJobRunner",
    "RetryProcessor",
    "JobLock",
    "JobRunResult",
    "RetryRunResult",
    "REMINDERS_LOCK",
    "RETENTION_LOCK",
    "RETRY_LOCK",
]
