"""Tests for the eligibility scanners."""

from datetime import date, timedelta

import pytest

from app.domain.eligibility import Eligible, NotYetDue, Skipped
from app.domain.models import AppointmentStatus, Channel, NotificationStatus, NotificationType
from app.eligibility import (
    AppointmentEventScanner,
    AppointmentReminderScanner,
    RetentionReminderScanner,
    WaitlistOfferScanner,
    clamp_max_notifications,
)
from app.persistence import RecordNotFoundError, close_database, get_session, init_database
from tests.helpers import (
    REFERENCE_NOW,
    add_appointment,
    add_breed,
    add_customer,
    add_log,
    add_pet,
    add_service,
    add_waitlist_entry,
)

APP_URL = "https://thepuppyday.com"


@pytest.fixture
def temp_database():
    init_database("sqlite:///:memory:")
    yield
    close_database()


def _by_source(decisions):
    return {decision.source_id: decision for decision in decisions}


class TestAppointmentReminderScanner:
    def test_window_bounds_are_inclusive(self, temp_database):
        with get_session() as session:
            customer_id = add_customer(session)
            ids = {
                hours: add_appointment(session, customer_id, REFERENCE_NOW + timedelta(hours=hours))
                for hours in (22, 23, 24, 25, 26)
            }

        decisions = AppointmentReminderScanner().scan(REFERENCE_NOW)

        assert {d.source_id for d in decisions} == {ids[23], ids[24], ids[25]}
        assert all(isinstance(d, Eligible) for d in decisions)

    def test_only_pending_and_confirmed(self, temp_database):
        with get_session() as session:
            customer_id = add_customer(session)
            pending = add_appointment(
                session, customer_id, REFERENCE_NOW + timedelta(hours=24), status=AppointmentStatus.PENDING
            )
            for status in (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW):
                add_appointment(session, customer_id, REFERENCE_NOW + timedelta(hours=24), status=status)

        decisions = AppointmentReminderScanner().scan(REFERENCE_NOW)

        assert [d.source_id for d in decisions] == [pending]

    def test_candidate_content(self, temp_database):
        with get_session() as session:
            customer_id = add_customer(session, first_name="Jane", phone="(555) 123-4567")
            pet_id = add_pet(session, customer_id, name="Max")
            service_id = add_service(session, name="Full Groom")
            add_appointment(
                session, customer_id, REFERENCE_NOW + timedelta(hours=24), pet_id=pet_id, service_id=service_id
            )

        (decision,) = AppointmentReminderScanner().scan(REFERENCE_NOW)

        candidate = decision.candidate
        assert candidate.customer_id == customer_id
        assert candidate.recipients == {Channel.SMS: "+15551234567"}
        assert candidate.template_data.pet_name == "Max"
        assert candidate.template_data.appointment_date == "Tuesday, January 16"
        assert candidate.template_data.appointment_time == "9:00 AM"

    @pytest.mark.parametrize("status", [NotificationStatus.SENT, NotificationStatus.FAILED, NotificationStatus.PENDING])
    def test_existing_reminder_row_dedupes(self, temp_database, status):
        with get_session() as session:
            appointment_id = add_appointment(session, add_customer(session), REFERENCE_NOW + timedelta(hours=24))
            add_log(session, source_id=appointment_id, status=status)

        (decision,) = AppointmentReminderScanner().scan(REFERENCE_NOW)

        assert decision == Skipped(appointment_id, "already_notified")

    def test_test_rows_do_not_dedupe(self, temp_database):
        with get_session() as session:
            appointment_id = add_appointment(session, add_customer(session), REFERENCE_NOW + timedelta(hours=24))
            add_log(session, source_id=appointment_id, is_test=True)

        (decision,) = AppointmentReminderScanner().scan(REFERENCE_NOW)

        assert isinstance(decision, Eligible)

    def test_sms_preference_off_skips(self, temp_database):
        with get_session() as session:
            customer_id = add_customer(session, preferences={"sms_appointment_reminders": False})
            appointment_id = add_appointment(session, customer_id, REFERENCE_NOW + timedelta(hours=24))

        (decision,) = AppointmentReminderScanner().scan(REFERENCE_NOW)

        assert isinstance(decision, Skipped)
        assert decision.source_id == appointment_id
        assert decision.reason.startswith("no_enabled_channel")

    def test_configured_defaults_enable_email(self, temp_database):
        with get_session() as session:
            add_appointment(session, add_customer(session), REFERENCE_NOW + timedelta(hours=24))

        scanner = AppointmentReminderScanner(
            settings_defaults={NotificationType.APPOINTMENT_REMINDER: {"email_enabled": True}}
        )
        (decision,) = scanner.scan(REFERENCE_NOW)

        assert decision.candidate.channels == [Channel.EMAIL, Channel.SMS]

    def test_scan_is_read_only(self, temp_database):
        with get_session() as session:
            add_appointment(session, add_customer(session), REFERENCE_NOW + timedelta(hours=24))

        scanner = AppointmentReminderScanner()
        first = scanner.scan(REFERENCE_NOW)
        second = scanner.scan(REFERENCE_NOW)

        assert first == second


class TestRetentionReminderScanner:
    def _pet_with_history(self, session, weeks_ago, breed_weeks=6, preferences=None, with_owner=True):
        owner_id = add_customer(session, preferences=preferences) if with_owner else None
        breed_id = add_breed(session, grooming_frequency_weeks=breed_weeks) if breed_weeks is not None else None
        pet_id = add_pet(session, owner_id, breed_id=breed_id)
        if weeks_ago is not None and owner_id is not None:
            add_appointment(
                session,
                owner_id,
                REFERENCE_NOW - timedelta(weeks=weeks_ago),
                pet_id=pet_id,
                status=AppointmentStatus.COMPLETED,
            )
        return pet_id

    def test_decisions_per_pet(self, temp_database):
        with get_session() as session:
            due = self._pet_with_history(session, weeks_ago=7)
            exactly_due = self._pet_with_history(session, weeks_ago=6)
            not_due = self._pet_with_history(session, weeks_ago=5)
            default_frequency = self._pet_with_history(session, weeks_ago=7, breed_weeks=None)
            opted_out = self._pet_with_history(session, weeks_ago=9, preferences={"marketing_opt_out": True})
            never_visited = self._pet_with_history(session, weeks_ago=None)
            orphan = self._pet_with_history(session, weeks_ago=None, with_owner=False)

        decisions = _by_source(RetentionReminderScanner(APP_URL).scan(REFERENCE_NOW))

        assert isinstance(decisions[due], Eligible)
        assert decisions[due].candidate.template_data.weeks_since_last == 7
        assert decisions[due].candidate.template_data.recommended_weeks == 6
        assert decisions[due].candidate.template_data.booking_url == f"{APP_URL}/booking"
        assert isinstance(decisions[exactly_due], Eligible)
        assert decisions[not_due] == NotYetDue(not_due, "5 of 6 weeks")
        assert decisions[default_frequency] == NotYetDue(default_frequency, "7 of 8 weeks")
        assert decisions[opted_out] == Skipped(opted_out, "marketing_opt_out")
        assert decisions[never_visited] == Skipped(never_visited, "no_completed_appointment")
        assert decisions[orphan] == Skipped(orphan, "no_owner")

    def test_cooldown(self, temp_database):
        with get_session() as session:
            recent = self._pet_with_history(session, weeks_ago=7)
            old = self._pet_with_history(session, weeks_ago=7)
            add_log(
                session,
                notification_type=NotificationType.RETENTION_REMINDER,
                source_id=recent,
                created_at=REFERENCE_NOW - timedelta(days=3),
            )
            add_log(
                session,
                notification_type=NotificationType.RETENTION_REMINDER,
                source_id=old,
                created_at=REFERENCE_NOW - timedelta(days=10),
            )

        decisions = _by_source(RetentionReminderScanner(APP_URL).scan(REFERENCE_NOW))

        assert decisions[recent] == Skipped(recent, "recently_notified")
        assert isinstance(decisions[old], Eligible)

    def test_retention_uses_both_channels(self, temp_database):
        with get_session() as session:
            pet_id = self._pet_with_history(session, weeks_ago=10)

        decisions = _by_source(RetentionReminderScanner(APP_URL).scan(REFERENCE_NOW))

        assert decisions[pet_id].candidate.channels == [Channel.EMAIL, Channel.SMS]


class TestWaitlistOfferScanner:
    @pytest.mark.parametrize("value,expected", [(0, 1), (-5, 1), (1, 1), (7, 7), (10, 10), (50, 10)])
    def test_clamp(self, value, expected):
        assert clamp_max_notifications(value) == expected

    def test_first_come_first_served(self, temp_database):
        with get_session() as session:
            service_id = add_service(session)
            entries = [
                add_waitlist_entry(session, add_customer(session), service_id, REFERENCE_NOW - timedelta(days=days))
                for days in (1, 5, 3)
            ]

        scanner = WaitlistOfferScanner(APP_URL)
        decisions = scanner.scan_slot(service_id, date(2024, 1, 20), "10:00 AM", REFERENCE_NOW, max_notifications=2)

        assert [d.source_id for d in decisions] == [entries[1], entries[2]]
        offer = decisions[0].candidate.template_data
        assert offer.available_date == "1/20"
        assert offer.available_time == "10:00 AM"
        assert offer.claim_url == f"{APP_URL}/booking/claim/{entries[1]}"
        assert offer.expires_in_hours == 2

    def test_default_is_one_offer(self, temp_database):
        with get_session() as session:
            service_id = add_service(session)
            for days in (1, 2):
                add_waitlist_entry(session, add_customer(session), service_id, REFERENCE_NOW - timedelta(days=days))

        decisions = WaitlistOfferScanner(APP_URL).scan_slot(service_id, date(2024, 1, 20), "10:00 AM", REFERENCE_NOW)

        assert len(decisions) == 1

    def test_offers_ignore_reminder_preferences(self, temp_database):
        with get_session() as session:
            service_id = add_service(session)
            customer_id = add_customer(session, preferences={"sms_appointment_reminders": False})
            add_waitlist_entry(session, customer_id, service_id, REFERENCE_NOW)

        (decision,) = WaitlistOfferScanner(APP_URL).scan_slot(service_id, date(2024, 1, 20), "10:00 AM", REFERENCE_NOW)

        assert decision.candidate.recipients == {Channel.SMS: "+15551234567"}


class TestAppointmentEventScanner:
    def test_booking_confirmation(self, temp_database):
        with get_session() as session:
            appointment_id = add_appointment(
                session, add_customer(session), REFERENCE_NOW + timedelta(days=3), total_price=65
            )

        decision = AppointmentEventScanner(NotificationType.BOOKING_CONFIRMATION).decide(appointment_id, REFERENCE_NOW)

        assert decision.candidate.notification_type == NotificationType.BOOKING_CONFIRMATION
        assert decision.candidate.channels == [Channel.EMAIL, Channel.SMS]
        assert decision.candidate.template_data.total_price == "$65.00"

    def test_cancellation_notice(self, temp_database):
        with get_session() as session:
            appointment_id = add_appointment(
                session, add_customer(session), REFERENCE_NOW + timedelta(days=3), status=AppointmentStatus.CANCELLED
            )

        decision = AppointmentEventScanner(NotificationType.APPOINTMENT_CANCELLED).decide(appointment_id, REFERENCE_NOW)

        assert decision.candidate.template_data.notification_type == "appointment_cancelled"

    def test_missing_appointment(self, temp_database):
        with pytest.raises(RecordNotFoundError):
            AppointmentEventScanner(NotificationType.BOOKING_CONFIRMATION).decide("missing", REFERENCE_NOW)

    def test_rejects_scheduled_types(self):
        with pytest.raises(ValueError):
            AppointmentEventScanner(NotificationType.APPOINTMENT_REMINDER)
