"""Result models for job runs, shaped for the cron endpoints."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

# Responses carry at most this many per-row errors
MAX_REPORTED_ERRORS = 10

SKIPPED_MESSAGE = "Job already running"


@dataclass
class JobRunResult:
    """
    Summary of one scan job (reminders, retention, waitlist).

    Attributes:
        job: Job name
        timestamp: When the run started (UTC)
        processed: Candidates dispatched
        sent: Candidates with at least one successful channel
        failed: Candidates where every channel failed
        skipped: Entities the scanner skipped, including those not yet due
        not_due: How many of the skipped entities were not yet due
        duration_ms: Wall time of the run
        skipped_run: Whether the run was skipped because the lock was held
        message: Optional human readable note
    """

    job: str
    timestamp: datetime
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    not_due: int = 0
    duration_ms: int = 0
    skipped_run: bool = False
    message: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        if self.skipped_run:
            return skipped_response(self.timestamp, self.message)

        return {
            "success": True,
            "timestamp": self.timestamp.isoformat(),
            "processed": self.processed,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration_ms": self.duration_ms,
        }


@dataclass
class RetryRunResult:
    """
    Summary of one Retry Processor run.

    Attributes:
        timestamp: When the run started (UTC)
        processed: Rows picked up for retry
        succeeded: Rows that are now ``sent``
        failed: Rows that failed again
        errors: ``{"log_id", "error"}`` for every failed row
        duration_ms: Wall time of the run
        skipped: Whether the run was skipped because the lock was held
        message: Optional human readable note
    """

    timestamp: datetime
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    duration_ms: int = 0
    skipped: bool = False
    message: Optional[str] = None

    def add_error(self, log_id: str, error: str) -> None:
        self.errors.append({"log_id": log_id, "error": error})

    def to_response(self) -> Dict[str, Any]:
        if self.skipped:
            return skipped_response(self.timestamp, self.message)

        response: Dict[str, Any] = {
            "success": True,
            "timestamp": self.timestamp.isoformat(),
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "error_count": len(self.errors),
            "duration_ms": self.duration_ms,
        }
        if self.errors:
            response["errors"] = self.errors[:MAX_REPORTED_ERRORS]
        return response


def skipped_response(timestamp: datetime, message: Optional[str] = None) -> Dict[str, Any]:
    return {
        "success": True,
        "skipped": True,
        "message": message or SKIPPED_MESSAGE,
        "timestamp": timestamp.isoformat(),
    }
