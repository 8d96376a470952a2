"""Typed substitution data for each notification type.

Each variant carries its ``notification_type`` as a discriminator so the JSON
stored on a NotificationLog row can be turned back into the right model when
the row is retried or resent.
"""

from typing import Annotated, Any, Dict, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from .models import NotificationType


class _TemplateDataBase(BaseModel):
    model_config = {"extra": "forbid", "frozen": True}

    def render_context(self) -> Dict[str, Any]:
        """Variables exposed to templates (discriminator excluded)."""
        return self.model_dump(exclude={"notification_type"})


class AppointmentReminderData(_TemplateDataBase):
    notification_type: Literal["appointment_reminder"] = "appointment_reminder"
    customer_name: str
    pet_name: str
    service_name: str
    appointment_date: str
    appointment_time: str


class RetentionReminderData(_TemplateDataBase):
    notification_type: Literal["retention_reminder"] = "retention_reminder"
    customer_name: str
    pet_name: str
    breed_name: str
    weeks_since_last: int
    recommended_weeks: int
    booking_url: str


class WaitlistOfferData(_TemplateDataBase):
    notification_type: Literal["waitlist_offer"] = "waitlist_offer"
    customer_name: str
    pet_name: str
    available_date: str
    available_time: str
    claim_url: str
    expires_in_hours: int


class BookingConfirmationData(_TemplateDataBase):
    notification_type: Literal["booking_confirmation"] = "booking_confirmation"
    customer_name: str
    pet_name: str
    service_name: str
    appointment_date: str
    appointment_time: str
    total_price: str


class AppointmentCancelledData(_TemplateDataBase):
    notification_type: Literal["appointment_cancelled"] = "appointment_cancelled"
    customer_name: str
    pet_name: str
    appointment_date: str
    appointment_time: str


TemplateData = Annotated[
    Union[
        AppointmentReminderData,
        RetentionReminderData,
        WaitlistOfferData,
        BookingConfirmationData,
        AppointmentCancelledData,
    ],
    Field(discriminator="notification_type"),
]

_template_data_adapter = TypeAdapter(TemplateData)


def parse_template_data(data: Dict[str, Any]) -> TemplateData:
    """Rebuild typed template data from its stored JSON form.

    Raises:
        pydantic.ValidationError: If the payload does not match any variant
    """
    return _template_data_adapter.validate_python(data)


# Placeholder values used for admin test sends
SAMPLE_TEMPLATE_DATA = {
    NotificationType.APPOINTMENT_REMINDER: AppointmentReminderData(
        customer_name="Jamie",
        pet_name="Biscuit",
        service_name="Full Groom",
        appointment_date="Monday, January 15",
        appointment_time="9:30 AM",
    ),
    NotificationType.RETENTION_REMINDER: RetentionReminderData(
        customer_name="Jamie",
        pet_name="Biscuit",
        breed_name="Goldendoodle",
        weeks_since_last=9,
        recommended_weeks=6,
        booking_url="https://thepuppyday.com/booking",
    ),
    NotificationType.WAITLIST_OFFER: WaitlistOfferData(
        customer_name="Jamie",
        pet_name="Biscuit",
        available_date="1/15",
        available_time="10:00 AM",
        claim_url="https://thepuppyday.com/booking/claim/sample",
        expires_in_hours=2,
    ),
    NotificationType.BOOKING_CONFIRMATION: BookingConfirmationData(
        customer_name="Jamie",
        pet_name="Biscuit",
        service_name="Full Groom",
        appointment_date="Monday, January 15",
        appointment_time="9:30 AM",
        total_price="$85.00",
    ),
    NotificationType.APPOINTMENT_CANCELLED: AppointmentCancelledData(
        customer_name="Jamie",
        pet_name="Biscuit",
        appointment_date="Monday, January 15",
        appointment_time="9:30 AM",
    ),
}
