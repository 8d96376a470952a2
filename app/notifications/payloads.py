"""Template data builders.

Turns scanner read models into the typed template data stored on each
NotificationLog row. Dates are formatted in the business timezone.
"""

import re
from datetime import date
from typing import Optional

from app.domain.models import Appointment, Customer, Pet, WaitlistEntry
from app.domain.template_data import (
    AppointmentCancelledData,
    AppointmentReminderData,
    BookingConfirmationData,
    RetentionReminderData,
    WaitlistOfferData,
)
from app.utils.timestamps import format_clock_time, format_long_date

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str) -> str:
    """Best-effort conversion of a US phone number to E.164.

    Numbers that cannot be normalized are returned stripped so the transport
    rejects them with a validation error.
    """
    stripped = phone.strip()
    digits = _NON_DIGITS.sub("", stripped)

    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"

    return stripped


def customer_name(customer: Optional[Customer]) -> str:
    if customer is None or not customer.first_name:
        return "there"
    return customer.first_name


def format_price(amount: Optional[float]) -> str:
    return f"${amount or 0:,.2f}"


def format_offer_date(available: date) -> str:
    """Short month/day form used in waitlist texts, e.g. ``1/15``."""
    return f"{available.month}/{available.day}"


def appointment_reminder_data(appointment: Appointment, tz_name: str) -> AppointmentReminderData:
    return AppointmentReminderData(
        customer_name=customer_name(appointment.customer),
        pet_name=appointment.pet_name or "your pet",
        service_name=appointment.service_name or "Grooming",
        appointment_date=format_long_date(appointment.scheduled_at, tz_name),
        appointment_time=format_clock_time(appointment.scheduled_at, tz_name),
    )


def booking_confirmation_data(appointment: Appointment, tz_name: str) -> BookingConfirmationData:
    return BookingConfirmationData(
        customer_name=customer_name(appointment.customer),
        pet_name=appointment.pet_name or "your pet",
        service_name=appointment.service_name or "Grooming",
        appointment_date=format_long_date(appointment.scheduled_at, tz_name),
        appointment_time=format_clock_time(appointment.scheduled_at, tz_name),
        total_price=format_price(appointment.total_price),
    )


def appointment_cancelled_data(appointment: Appointment, tz_name: str) -> AppointmentCancelledData:
    return AppointmentCancelledData(
        customer_name=customer_name(appointment.customer),
        pet_name=appointment.pet_name or "your pet",
        appointment_date=format_long_date(appointment.scheduled_at, tz_name),
        appointment_time=format_clock_time(appointment.scheduled_at, tz_name),
    )


def retention_reminder_data(
    pet: Pet,
    weeks_since_last: int,
    recommended_weeks: int,
    booking_url: str,
) -> RetentionReminderData:
    return RetentionReminderData(
        customer_name=customer_name(pet.owner),
        pet_name=pet.name,
        breed_name=pet.breed.name if pet.breed else "",
        weeks_since_last=weeks_since_last,
        recommended_weeks=recommended_weeks,
        booking_url=booking_url,
    )


def waitlist_offer_data(
    entry: WaitlistEntry,
    available_date: date,
    available_time: str,
    claim_url: str,
    expires_in_hours: int,
) -> WaitlistOfferData:
    return WaitlistOfferData(
        customer_name=customer_name(entry.customer),
        pet_name=entry.pet_name or "your pet",
        available_date=format_offer_date(available_date),
        available_time=available_time,
        claim_url=claim_url,
        expires_in_hours=expires_in_hours,
    )


def booking_url(app_url: str) -> str:
    return f"{app_url}/booking"


def claim_url(app_url: str, entry_id: str) -> str:
    return f"{app_url}/booking/claim/{entry_id}"
