"""Additional validation utilities for configuration and settings."""

import warnings
from typing import Any, Dict, List, Optional

from apscheduler.triggers.cron import CronTrigger

CRON_FORMAT_ERROR = "Invalid cron expression format. Expected 5 fields: minute hour day month weekday"


def is_valid_cron_expression(expression: Optional[str]) -> bool:
    """Check a standard 5-field crontab expression.

    The expression must have exactly five whitespace-separated fields and be
    accepted by APScheduler's crontab parser.
    """
    if not isinstance(expression, str):
        return False

    if len(expression.split()) != 5:
        return False

    try:
        CronTrigger.from_crontab(expression, timezone="UTC")
    except ValueError:
        return False

    return True


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for potential issues and return warnings.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    jobs = config_dict.get("jobs", {})
    if isinstance(jobs, dict):
        start = jobs.get("reminder_window_start_hours", 23)
        end = jobs.get("reminder_window_end_hours", 25)
        if isinstance(start, (int, float)) and isinstance(end, (int, float)) and end - start > 2:
            warning_messages.append(
                f"Reminder window of {end - start}h is wider than the hourly schedule needs; "
                "reminders are still sent once per appointment"
            )

        batch_size = jobs.get("retry_batch_size", 100)
        if isinstance(batch_size, int) and batch_size > 500:
            warning_messages.append(
                f"Large retry_batch_size ({batch_size}) may keep the retry lock held for a long time"
            )

    mock = config_dict.get("mock", {})
    if isinstance(mock, dict):
        failure_rate = mock.get("failure_rate", 0.03)
        if isinstance(failure_rate, (int, float)) and failure_rate > 0.5:
            warning_messages.append(
                f"Mock failure_rate ({failure_rate}) will fail most simulated sends"
            )

    scheduler = config_dict.get("scheduler", {})
    if isinstance(scheduler, dict) and scheduler.get("enabled") is False:
        warning_messages.append(
            "In-process scheduler is disabled; jobs only run through the /cron endpoints"
        )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit warning messages using Python's warnings module."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
