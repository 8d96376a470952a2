"""Tests for the HTTP API.

Covers the cron triggers (auth and response bodies), the settings API
validation, the log viewer filters and paging, manual resend and the admin
actions. Requests go through FastAPI's TestClient against an in-memory
database and mock transports.
"""

import random
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.api import create_app
from app.config.environment import EnvironmentConfig
from app.config.models import AppConfig
from app.domain.models import Channel, NotificationStatus, NotificationType
from app.notifications import MockEmailTransport, MockSMSTransport, SendResult
from app.persistence import PersistenceError, close_database, get_session, init_database
from app.runtime import build_services
from tests.helpers import (
    REFERENCE_NOW,
    add_appointment,
    add_customer,
    add_log,
    add_service,
    add_waitlist_entry,
)

CRON_SECRET = "cron-secret"
ADMIN_TOKEN = "admin-token"


@pytest.fixture
def temp_database():
    init_database("sqlite:///:memory:")
    yield
    close_database()


def _services(use_mocks=True):
    env_config = EnvironmentConfig(
        use_mocks=use_mocks,
        cron_secret=CRON_SECRET,
        admin_api_token=ADMIN_TOKEN,
        app_url="https://thepuppyday.com",
    )
    return build_services(
        AppConfig(),
        env_config,
        email_transport=MockEmailTransport(failure_rate=0.0, rng=random.Random(5), sleep=lambda s: None),
        sms_transport=MockSMSTransport(failure_rate=0.0, rng=random.Random(5), sleep=lambda s: None),
        clock=lambda: REFERENCE_NOW,
    )


@pytest.fixture
def services(temp_database):
    return _services()


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as test_client:
        yield test_client


@pytest.fixture
def secured_services(temp_database):
    return _services(use_mocks=False)


@pytest.fixture
def secured_client(secured_services):
    with TestClient(create_app(secured_services)) as test_client:
        yield test_client


class TestCronEndpoints:
    def test_reminders_run(self, client):
        with get_session() as session:
            add_appointment(session, add_customer(session), REFERENCE_NOW + timedelta(hours=24))

        response = client.get("/cron/notifications/reminders")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert (body["processed"], body["sent"], body["failed"], body["skipped"]) == (1, 1, 0, 0)

    def test_post_is_accepted(self, client):
        response = client.post("/cron/notifications/retention")

        assert response.status_code == 200
        assert response.json()["processed"] == 0

    def test_retry_run(self, client):
        response = client.get("/cron/notifications/retry")

        assert response.status_code == 200
        assert response.json()["error_count"] == 0

    @pytest.mark.parametrize(
        "headers",
        [{}, {"Authorization": "Bearer wrong"}, {"Authorization": CRON_SECRET}],
    )
    def test_rejects_missing_or_wrong_secret(self, secured_client, headers):
        response = secured_client.get("/cron/notifications/reminders", headers=headers)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_accepts_cron_secret(self, secured_client):
        response = secured_client.get(
            "/cron/notifications/reminders", headers={"Authorization": f"Bearer {CRON_SECRET}"}
        )

        assert response.status_code == 200

    def test_job_failure_returns_500(self, client, services):
        with patch.object(services.runner, "run_reminders", side_effect=PersistenceError("db down")):
            response = client.get("/cron/notifications/reminders")

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "db down"
        assert "timestamp" in body


class TestSettingsEndpoints:
    def test_list_settings(self, client):
        response = client.get("/admin/notifications/settings")

        assert response.status_code == 200
        types = [s["notification_type"] for s in response.json()["settings"]]
        assert types == [t.value for t in NotificationType]

    def test_get_settings(self, client):
        response = client.get("/admin/notifications/settings/appointment_reminder")

        assert response.status_code == 200
        settings = response.json()["settings"]
        assert settings["schedule_cron"] == "0 * * * *"
        assert settings["retry_delays_seconds"] == [30, 300]

    def test_unknown_type(self, client):
        response = client.get("/admin/notifications/settings/birthday_card")

        assert response.status_code == 404
        assert response.json() == {"error": "Notification type not found"}

    def test_update_settings(self, client):
        response = client.put(
            "/admin/notifications/settings/appointment_reminder",
            json={"email_enabled": True, "max_retries": 3, "retry_delays_seconds": [60, 600], "extra": 1},
        )

        assert response.status_code == 200
        settings = response.json()["settings"]
        assert settings["email_enabled"] is True
        assert settings["max_retries"] == 3
        assert settings["retry_delays_seconds"] == [60, 600]

        again = client.get("/admin/notifications/settings/appointment_reminder").json()["settings"]
        assert again["max_retries"] == 3

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"email_enabled": "true"}, "email_enabled must be a boolean"),
            ({"schedule_cron": "every hour"}, "Invalid cron expression format. Expected 5 fields: minute hour day month weekday"),
            ({"max_retries": -1}, "max_retries must be a non-negative integer"),
            ({"max_retries": 1.5}, "max_retries must be a non-negative integer"),
            ({"retry_delays_seconds": [30, "x"]}, "retry_delays_seconds must be an array of positive integers"),
            ({"retry_delays_seconds": 30}, "retry_delays_seconds must be an array of positive integers"),
            ({"email_enabled": 1}, "email_enabled must be a boolean"),
            ({"sms_enabled": None}, "sms_enabled must be a boolean"),
            ({"max_retries": True}, "max_retries must be a non-negative integer"),
            ({"max_retries": "2"}, "max_retries must be a non-negative integer"),
            ({"retry_delays_seconds": [30, -5]}, "retry_delays_seconds must be an array of positive integers"),
            ({"schedule_cron": 5}, "Invalid cron expression format. Expected 5 fields: minute hour day month weekday"),
            ({"unknown": True}, "No valid fields provided for update"),
            ({}, "No valid fields provided for update"),
            ([1, 2], "Invalid request body"),
        ],
    )
    def test_update_validation(self, client, payload, message):
        response = client.put("/admin/notifications/settings/appointment_reminder", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": message}

    def test_null_cron_clears_schedule(self, client):
        response = client.put(
            "/admin/notifications/settings/retention_reminder", json={"schedule_cron": None, "unknown": 1}
        )

        assert response.status_code == 200
        assert response.json()["settings"]["schedule_cron"] is None

    def test_missing_body_is_rejected(self, client):
        response = client.put("/admin/notifications/settings/retention_reminder")

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    def test_update_resyncs_scheduler(self, client, services):
        services.scheduler = MagicMock()

        client.put("/admin/notifications/settings/retention_reminder", json={"schedule_enabled": False})

        services.scheduler.sync_jobs.assert_called_once_with()

    def test_admin_token_required_when_secured(self, secured_client):
        assert secured_client.get("/admin/notifications/settings").status_code == 401

        response = secured_client.get(
            "/admin/notifications/settings", headers={"Authorization": f"Bearer {ADMIN_TOKEN}"}
        )
        assert response.status_code == 200


class TestLogEndpoints:
    def _seed(self):
        with get_session() as session:
            ids = {
                "old_sms": add_log(session, created_at=REFERENCE_NOW - timedelta(days=3)),
                "email": add_log(
                    session,
                    channel=Channel.EMAIL,
                    recipient="jane@example.com",
                    subject="Reminder: Max",
                    status=NotificationStatus.SENT,
                    created_at=REFERENCE_NOW - timedelta(days=1),
                ),
                "retention": add_log(
                    session,
                    notification_type=NotificationType.RETENTION_REMINDER,
                    recipient="+15559990000",
                    created_at=REFERENCE_NOW,
                ),
            }
        return ids

    def test_newest_first_with_metadata(self, client):
        ids = self._seed()

        body = client.get("/admin/notifications/log").json()

        assert [log["id"] for log in body["logs"]] == [ids["retention"], ids["email"], ids["old_sms"]]
        assert body["metadata"] == {"total": 3, "page": 1, "limit": 50, "total_pages": 1}

    def test_pagination(self, client):
        ids = self._seed()

        body = client.get("/admin/notifications/log", params={"page": 2, "limit": 2}).json()

        assert [log["id"] for log in body["logs"]] == [ids["old_sms"]]
        assert body["metadata"]["total_pages"] == 2

    @pytest.mark.parametrize(
        "params,expected",
        [
            ({"type": "retention_reminder"}, ["retention"]),
            ({"channel": "email"}, ["email"]),
            ({"status": "failed"}, ["retention", "old_sms"]),
            ({"search": "jane@"}, ["email"]),
            ({"search": "reminder: max"}, ["email"]),
            ({"start_date": "2024-01-14T00:00:00Z"}, ["retention", "email"]),
            ({"end_date": "2024-01-13T00:00:00Z"}, ["old_sms"]),
        ],
    )
    def test_filters(self, client, params, expected):
        ids = self._seed()

        body = client.get("/admin/notifications/log", params=params).json()

        assert [log["id"] for log in body["logs"]] == [ids[name] for name in expected]

    @pytest.mark.parametrize(
        "params,message",
        [
            ({"page": "0"}, "Invalid page parameter. Must be a positive integer."),
            ({"page": "abc"}, "Invalid page parameter. Must be a positive integer."),
            ({"limit": "101"}, "Invalid limit parameter. Must be between 1 and 100."),
            ({"channel": "fax"}, 'Invalid channel parameter. Must be either "email" or "sms".'),
            ({"status": "lost"}, 'Invalid status parameter. Must be one of: "sent", "failed", "pending".'),
            ({"type": "birthday"}, "Invalid type parameter."),
            ({"start_date": "yesterday"}, "Invalid start_date parameter. Must be a valid ISO date string."),
        ],
    )
    def test_invalid_filters(self, client, params, message):
        response = client.get("/admin/notifications/log", params=params)

        assert response.status_code == 400
        assert response.json() == {"error": message}

    def test_get_single_log(self, client):
        ids = self._seed()

        response = client.get(f"/admin/notifications/log/{ids['email']}")

        assert response.status_code == 200
        log = response.json()["log"]
        assert log["channel"] == "email"
        assert log["template_data"]["pet_name"] == "Max"

    def test_rows_are_flagged_when_retries_are_over(self, client):
        ids = self._seed()
        with get_session() as session:
            ids["scheduled"] = add_log(session, next_retry_at=REFERENCE_NOW + timedelta(minutes=5))
            ids["at_limit"] = add_log(session, retry_count=2, next_retry_at=REFERENCE_NOW)

        logs = {log["id"]: log for log in client.get("/admin/notifications/log").json()["logs"]}

        assert logs[ids["scheduled"]]["exhausted"] is False
        assert logs[ids["email"]]["exhausted"] is False
        assert logs[ids["old_sms"]]["exhausted"] is True
        assert logs[ids["at_limit"]]["exhausted"] is True
        single = client.get(f"/admin/notifications/log/{ids['scheduled']}").json()["log"]
        assert single["exhausted"] is False

    def test_get_missing_log(self, client):
        response = client.get("/admin/notifications/log/missing")

        assert response.status_code == 404
        assert response.json() == {"error": "Notification log entry not found"}


class TestResendEndpoint:
    def test_resend_failed_log(self, client, services):
        with get_session() as session:
            log_id = add_log(session)

        response = client.post(f"/admin/notifications/log/{log_id}/resend")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Notification resent successfully"
        assert body["new_log_id"] != log_id

    def test_resend_sent_log_is_rejected(self, client):
        with get_session() as session:
            log_id = add_log(session, status=NotificationStatus.SENT)

        response = client.post(f"/admin/notifications/log/{log_id}/resend")

        assert response.status_code == 400
        assert response.json() == {
            "error": "Cannot resend notification with status 'sent'. Only failed notifications can be resent."
        }

    def test_resend_missing_log(self, client):
        response = client.post("/admin/notifications/log/missing/resend")

        assert response.status_code == 404
        assert response.json() == {"error": "Original notification log entry not found"}

    def test_resend_that_fails_again(self, client, services):
        with get_session() as session:
            log_id = add_log(session)
        services.notification_service.sms_transport = MagicMock()
        services.notification_service.sms_transport.send.return_value = SendResult(success=False, error="timeout")

        response = client.post(f"/admin/notifications/log/{log_id}/resend")

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "timeout"
        assert body["new_log_id"]


class TestAdminActions:
    def test_send_test_notification(self, client):
        response = client.post(
            "/admin/notifications/test",
            json={"type": "appointment_reminder", "channel": "sms", "recipient": "+15557654321"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["log_id"]
        assert body["message_id"]

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"channel": "sms", "recipient": "+15557654321"}, "type is required"),
            ({"type": "nope", "channel": "sms", "recipient": "+15557654321"}, "Invalid notification type"),
            (
                {"type": "appointment_reminder", "channel": "fax", "recipient": "x"},
                'Invalid channel. Must be either "email" or "sms".',
            ),
            ({"type": "appointment_reminder", "channel": "sms", "recipient": "  "}, "recipient is required"),
            ({"type": "appointment_reminder", "channel": "sms"}, "recipient is required"),
            ({"type": "appointment_reminder", "channel": "sms", "recipient": 15557654321}, "recipient is required"),
        ],
    )
    def test_send_test_validation(self, client, payload, message):
        response = client.post("/admin/notifications/test", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": message}

    def test_invalid_test_recipient_fails(self, client):
        response = client.post(
            "/admin/notifications/test",
            json={"type": "appointment_reminder", "channel": "sms", "recipient": "12345"},
        )

        assert response.status_code == 500
        assert "Invalid phone number format" in response.json()["error"]

    def test_waitlist_offer(self, client):
        with get_session() as session:
            service_id = add_service(session)
            add_waitlist_entry(session, add_customer(session), service_id, REFERENCE_NOW - timedelta(days=1))

        response = client.post(
            "/admin/waitlist/offers",
            json={"service_id": service_id, "available_date": "2024-01-20", "available_time": "10:00 AM"},
        )

        assert response.status_code == 200
        assert response.json()["sent"] == 1

    @pytest.mark.parametrize(
        "payload,message",
        [
            ({"available_date": "2024-01-20", "available_time": "10:00 AM"}, "service_id is required"),
            (
                {"service_id": "s1", "available_date": "20/01/2024", "available_time": "10:00 AM"},
                "available_date must be a date in YYYY-MM-DD format",
            ),
            (
                {"service_id": "s1", "available_date": "2024-01-20", "available_time": "10:00 AM", "max_notifications": "3"},
                "max_notifications must be an integer",
            ),
        ],
    )
    def test_waitlist_offer_validation(self, client, payload, message):
        response = client.post("/admin/waitlist/offers", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": message}

    def test_booking_confirmation(self, client):
        with get_session() as session:
            appointment_id = add_appointment(session, add_customer(session), REFERENCE_NOW + timedelta(days=2))

        response = client.post(f"/admin/appointments/{appointment_id}/booking-confirmation")

        assert response.status_code == 200
        assert response.json()["sent"] == 1

    @pytest.mark.parametrize("action", ["booking-confirmation", "cancellation-notice"])
    def test_appointment_notice_for_missing_appointment(self, client, action):
        response = client.post(f"/admin/appointments/missing/{action}")

        assert response.status_code == 404
        assert response.json() == {"error": "Appointment not found"}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "mocks": True}


def test_lifespan_starts_and_stops_scheduler(services):
    services.scheduler = MagicMock()

    with TestClient(create_app(services)):
        services.scheduler.start.assert_called_once_with()

    services.scheduler.shutdown.assert_called_once_with(wait=False)
