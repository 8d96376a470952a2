"""Query parameter parsing for the log viewer.

Request bodies are pydantic models (see schemas.py); query strings are
parsed here so each bad parameter gets its own message.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Type, TypeVar

from app.utils.timestamps import parse_iso_datetime

E = TypeVar("E", bound=Enum)


class RequestValidationFailed(Exception):
    """Raised when a request is rejected with 400 and a message."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def parse_enum_filter(enum_cls: Type[E], value: Optional[str], message: str) -> Optional[E]:
    if value is None or value == "":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise RequestValidationFailed(message) from None


def parse_date_filter(value: Optional[str], name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    parsed = parse_iso_datetime(value)
    if parsed is None:
        raise RequestValidationFailed(f"Invalid {name} parameter. Must be a valid ISO date string.")
    return parsed


def parse_positive_int(value: Optional[str], default: int, message: str, maximum: Optional[int] = None) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except ValueError:
        raise RequestValidationFailed(message) from None
    if number < 1 or (maximum is not None and number > maximum):
        raise RequestValidationFailed(message)
    return number
