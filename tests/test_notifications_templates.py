"""Tests for notification template rendering.

Covers the packaged templates for every type and channel, HTML escaping,
database overrides and the errors raised for broken templates.
"""

import pytest

from app.config.models import BusinessConfig
from app.domain.models import Channel, NotificationTemplate, NotificationType
from app.domain.template_data import SAMPLE_TEMPLATE_DATA, AppointmentReminderData
from app.notifications.models import NotificationTemplateError
from app.notifications.templates import TemplateRenderer, sms_segment_count


@pytest.fixture
def renderer():
    return TemplateRenderer(BusinessConfig().template_context())


def _reminder(**overrides) -> AppointmentReminderData:
    values = dict(
        customer_name="Jamie",
        pet_name="Biscuit",
        service_name="Full Groom",
        appointment_date="Monday, January 15",
        appointment_time="9:30 AM",
    )
    values.update(overrides)
    return AppointmentReminderData(**values)


def _override(channel: Channel, text: str, subject=None, html=None) -> NotificationTemplate:
    return NotificationTemplate(
        id="tpl-1",
        name="custom",
        type=NotificationType.APPOINTMENT_REMINDER,
        channel=channel,
        subject_template=subject,
        html_template=html,
        text_template=text,
    )


class TestPackagedTemplates:
    def test_reminder_sms(self, renderer):
        rendered = renderer.render(NotificationType.APPOINTMENT_REMINDER, Channel.SMS, _reminder())

        assert rendered.text == (
            "Reminder: Biscuit's grooming tomorrow at 9:30 AM. "
            "Need to cancel? Call (657) 252-2903. See you soon! - Puppy Day"
        )
        assert rendered.subject is None
        assert rendered.html is None

    def test_reminder_email(self, renderer):
        rendered = renderer.render(NotificationType.APPOINTMENT_REMINDER, Channel.EMAIL, _reminder())

        assert rendered.subject == "Reminder: Biscuit's Grooming Appointment Tomorrow"
        assert "Monday, January 15 at 9:30 AM" in rendered.text
        assert "14936 Leffingwell Rd" in rendered.text
        assert "Full Groom" in rendered.html
        assert rendered.html.lstrip().lower().startswith("<!doctype html")

    @pytest.mark.parametrize("notification_type", list(NotificationType))
    @pytest.mark.parametrize("channel", list(Channel))
    def test_every_type_renders_on_every_channel(self, renderer, notification_type, channel):
        rendered = renderer.render(notification_type, channel, SAMPLE_TEMPLATE_DATA[notification_type])

        assert rendered.text
        assert "{{" not in rendered.text
        if channel == Channel.EMAIL:
            assert rendered.subject
            assert rendered.html
            assert "\n" not in rendered.subject

    def test_sample_sms_bodies_fit_one_segment(self, renderer):
        for notification_type, data in SAMPLE_TEMPLATE_DATA.items():
            rendered = renderer.render(notification_type, Channel.SMS, data)
            assert sms_segment_count(rendered.text) == 1, notification_type

    def test_html_is_escaped_but_text_is_not(self, renderer):
        rendered = renderer.render(
            NotificationType.APPOINTMENT_REMINDER, Channel.EMAIL, _reminder(pet_name="<b>Rex</b>")
        )

        assert "&lt;b&gt;Rex&lt;/b&gt;" in rendered.html
        assert "<b>Rex</b>" in rendered.text


class TestOverrides:
    def test_sms_override(self, renderer):
        override = _override(Channel.SMS, "Hi {{ customer_name }}, see {{ pet_name }} at {{ appointment_time }}")

        rendered = renderer.render(NotificationType.APPOINTMENT_REMINDER, Channel.SMS, _reminder(), override)

        assert rendered.text == "Hi Jamie, see Biscuit at 9:30 AM"

    def test_email_override_escapes_html_only(self, renderer):
        override = _override(
            Channel.EMAIL,
            "Hello {{ customer_name }}",
            subject="For {{ pet_name }}",
            html="<p>{{ customer_name }}</p>",
        )

        rendered = renderer.render(
            NotificationType.APPOINTMENT_REMINDER, Channel.EMAIL, _reminder(customer_name="Tom & Jerry"), override
        )

        assert rendered.subject == "For Biscuit"
        assert rendered.text == "Hello Tom & Jerry"
        assert rendered.html == "<p>Tom &amp; Jerry</p>"

    def test_override_without_html(self, renderer):
        override = _override(Channel.EMAIL, "Plain", subject="Subject")

        rendered = renderer.render(NotificationType.APPOINTMENT_REMINDER, Channel.EMAIL, _reminder(), override)

        assert rendered.html is None

    def test_unknown_variable_fails(self, renderer):
        override = _override(Channel.SMS, "Hi {{ nickname }}")

        with pytest.raises(NotificationTemplateError, match="appointment_reminder/sms"):
            renderer.render(NotificationType.APPOINTMENT_REMINDER, Channel.SMS, _reminder(), override)

    def test_syntax_error_fails(self, renderer):
        override = _override(Channel.SMS, "Hi {{ customer_name ")

        with pytest.raises(NotificationTemplateError):
            renderer.render(NotificationType.APPOINTMENT_REMINDER, Channel.SMS, _reminder(), override)

    def test_empty_subject_fails(self, renderer):
        override = _override(Channel.EMAIL, "Body", subject="   ")

        with pytest.raises(NotificationTemplateError, match="subject"):
            renderer.render(NotificationType.APPOINTMENT_REMINDER, Channel.EMAIL, _reminder(), override)


@pytest.mark.parametrize("length,segments", [(0, 1), (160, 1), (161, 2), (306, 2), (307, 3)])
def test_sms_segment_count(length, segments):
    assert sms_segment_count("x" * length) == segments
