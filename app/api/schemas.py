"""Request bodies for the admin endpoints.

The models use strict scalar types: ``"true"`` is not a boolean and ``1.5``
or ``"3"`` is not an integer. ``error_message`` turns the first validation
error into the message returned to the client.
"""

from datetime import date
from typing import Annotated, Any, Dict, List, Optional, Sequence

from pydantic import (
    BaseModel,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    StringConstraints,
    field_validator,
    model_validator,
)
from pydantic_core import PydanticCustomError

from app.config.validators import CRON_FORMAT_ERROR, is_valid_cron_expression
from app.domain.models import Channel, NotificationType

INVALID_BODY = "Invalid request body"

# Errors raised with this type carry the client message as-is
MESSAGE_ERROR_TYPE = "request_message"

RequiredText = Annotated[StrictStr, StringConstraints(strip_whitespace=True, min_length=1)]
NonNegativeStrictInt = Annotated[StrictInt, Field(ge=0)]

FIELD_MESSAGES: Dict[str, str] = {
    "email_enabled": "email_enabled must be a boolean",
    "sms_enabled": "sms_enabled must be a boolean",
    "schedule_enabled": "schedule_enabled must be a boolean",
    "schedule_cron": CRON_FORMAT_ERROR,
    "max_retries": "max_retries must be a non-negative integer",
    "retry_delays_seconds": "retry_delays_seconds must be an array of positive integers",
    "type": "Invalid notification type",
    "channel": 'Invalid channel. Must be either "email" or "sms".',
    "recipient": "recipient is required",
    "service_id": "service_id is required",
    "available_date": "available_date must be a date in YYYY-MM-DD format",
    "available_time": "available_time is required",
    "max_notifications": "max_notifications must be an integer",
}


class SettingsUpdateRequest(BaseModel):
    """Partial update of one type's settings; unknown keys are ignored."""

    email_enabled: Optional[StrictBool] = None
    sms_enabled: Optional[StrictBool] = None
    schedule_enabled: Optional[StrictBool] = None
    schedule_cron: Optional[StrictStr] = None
    max_retries: Optional[NonNegativeStrictInt] = None
    retry_delays_seconds: Optional[List[NonNegativeStrictInt]] = None

    @field_validator(
        "email_enabled", "sms_enabled", "schedule_enabled", "max_retries", "retry_delays_seconds", mode="before"
    )
    @classmethod
    def reject_null(cls, value: Any) -> Any:
        # Only schedule_cron may be cleared with null
        if value is None:
            raise ValueError("null is not allowed")
        return value

    @field_validator("schedule_cron")
    @classmethod
    def valid_cron(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        if not is_valid_cron_expression(value):
            raise ValueError(CRON_FORMAT_ERROR)
        return value.strip()

    @model_validator(mode="after")
    def has_changes(self) -> "SettingsUpdateRequest":
        if not self.model_fields_set:
            raise PydanticCustomError(MESSAGE_ERROR_TYPE, "No valid fields provided for update")
        return self

    def changes(self) -> Dict[str, Any]:
        """Only the fields present in the request body."""
        return self.model_dump(exclude_unset=True)


class SendTestRequest(BaseModel):
    type: NotificationType
    channel: Channel
    recipient: RequiredText


class WaitlistOfferRequest(BaseModel):
    service_id: RequiredText
    available_date: date
    available_time: RequiredText
    max_notifications: StrictInt = 1

    @field_validator("available_date", mode="before")
    @classmethod
    def iso_date(cls, value: Any) -> date:
        if not isinstance(value, str):
            raise ValueError("expected a YYYY-MM-DD string")
        return date.fromisoformat(value.strip())


def error_message(errors: Sequence[Dict[str, Any]]) -> str:
    """Client-facing message for the first error of a rejected request body."""
    if not errors:
        return INVALID_BODY

    error = errors[0]
    if error["type"] == MESSAGE_ERROR_TYPE:
        return error["msg"]

    # loc is ("body", field, ...) for a field error and ("body",) for the whole body
    field = error["loc"][1] if len(error["loc"]) > 1 else None
    if not isinstance(field, str):
        return INVALID_BODY
    if error["type"] == "missing":
        return f"{field} is required"
    return FIELD_MESSAGES.get(field, INVALID_BODY)
