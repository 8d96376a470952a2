"""Classification of send failures.

The category decides whether the Retry Processor gets another go at a row:
validation failures are permanent, everything else is retried until the
type's ``max_retries`` is used up.
"""

import re
from dataclasses import dataclass
from typing import Optional, Union

from app.domain.models import ErrorCategory

NETWORK_MARKERS = (
    "econnreset",
    "etimedout",
    "econnrefused",
    "ehostunreach",
    "enetunreach",
    "enotfound",
    "network",
    "timeout",
    "timed out",
    "connection refused",
    "connection reset",
    "connection aborted",
    "connection error",
    "socket hang up",
    "temporarily unavailable",
)

RATE_LIMIT_MARKERS = (
    "rate limit",
    "too many requests",
    "429",
    "throttled",
    "quota exceeded",
)

VALIDATION_MARKERS = (
    "invalid",
    "validation",
    "malformed",
    "bad request",
    "missing required",
    "format",
    "not valid",
    "unprocessable",
)


def _marker_pattern(markers):
    # Markers must start a word: "format" matches "format error", not "information"
    return re.compile(r"\b(?:" + "|".join(re.escape(marker) for marker in markers) + ")")


NETWORK_PATTERN = _marker_pattern(NETWORK_MARKERS)
RATE_LIMIT_PATTERN = _marker_pattern(RATE_LIMIT_MARKERS)
VALIDATION_PATTERN = _marker_pattern(VALIDATION_MARKERS)


@dataclass(frozen=True)
class ClassifiedError:
    category: ErrorCategory
    message: str
    status_code: Optional[int] = None

    @property
    def retryable(self) -> bool:
        return self.category != ErrorCategory.VALIDATION


def classify_error(error: Union[BaseException, str, None], status_code: Optional[int] = None) -> ClassifiedError:
    """Classify an exception or error message.

    An explicit ``status_code`` (or one carried on the exception) wins over
    message matching.

    Args:
        error: Exception raised by a transport, or the error string it returned
        status_code: Provider HTTP status, if known
    """
    if error is None:
        message = "Unknown error occurred"
    else:
        message = str(error) or type(error).__name__

    if status_code is None and isinstance(error, BaseException):
        status_code = getattr(error, "status_code", None)

    if status_code:
        if status_code == 429:
            return ClassifiedError(ErrorCategory.RATE_LIMIT, message, status_code)
        if status_code >= 500:
            return ClassifiedError(ErrorCategory.TRANSIENT, message, status_code)
        if status_code in (400, 422):
            return ClassifiedError(ErrorCategory.VALIDATION, message, status_code)

    if isinstance(error, (TimeoutError, ConnectionError)):
        return ClassifiedError(ErrorCategory.TRANSIENT, message, status_code)

    lowered = message.lower()
    if NETWORK_PATTERN.search(lowered):
        category = ErrorCategory.TRANSIENT
    elif RATE_LIMIT_PATTERN.search(lowered):
        category = ErrorCategory.RATE_LIMIT
    elif VALIDATION_PATTERN.search(lowered):
        category = ErrorCategory.VALIDATION
    else:
        category = ErrorCategory.UNKNOWN

    return ClassifiedError(category, message, status_code)
