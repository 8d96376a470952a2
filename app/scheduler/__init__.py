"""In-process scheduling of the notification jobs."""

from .service import SchedulerService

__all__ = [
    "SchedulerService",
]
