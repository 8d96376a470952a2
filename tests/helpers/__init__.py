"""Test helper utilities for the Puppy Day notification tests."""

from .factories import (
    REFERENCE_NOW,
    add_appointment,
    add_breed,
    add_customer,
    add_log,
    add_pet,
    add_service,
    add_template,
    add_waitlist_entry,
    all_logs,
    reminder_template_data,
)

__all__ = [
    "REFERENCE_NOW",
    "add_appointment",
    "add_breed",
    "add_customer",
    "add_log",
    "add_pet",
    "add_service",
    "add_template",
    "add_waitlist_entry",
    "all_logs",
    "reminder_template_data",
]
