"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest

from app.config import (
    AppConfig,
    ConfigurationError,
    JobsConfig,
    MockConfig,
    NotificationDefaultsConfig,
    SchedulerConfig,
    is_truthy,
    is_valid_cron_expression,
    load_app_config,
    load_config,
)
from app.config.environment import DEFAULT_DATABASE_URL, load_environment_config
from app.config.validators import check_for_warnings
from app.domain.models import NotificationType

ENV_VARS = (
    "DATABASE_URL",
    "USE_MOCKS",
    "APP_URL",
    "CRON_SECRET",
    "ADMIN_API_TOKEN",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_PASS",
    "SMTP_FROM_EMAIL",
    "SMTP_SENDER_NAME",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TWILIO_PHONE_NUMBER",
    "LOG_LEVEL",
    "ENVIRONMENT",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the loader reads."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def production_env(clean_env):
    """A complete set of real-transport credentials."""
    clean_env.setenv("SMTP_HOST", "smtp.test.com")
    clean_env.setenv("SMTP_PORT", "587")
    clean_env.setenv("SMTP_USER", "user@test.com")
    clean_env.setenv("SMTP_PASS", "testpass123")
    clean_env.setenv("SMTP_FROM_EMAIL", "hello@thepuppyday.com")
    clean_env.setenv("TWILIO_ACCOUNT_SID", "AC123")
    clean_env.setenv("TWILIO_AUTH_TOKEN", "secret")
    clean_env.setenv("TWILIO_PHONE_NUMBER", "+16572522903")
    clean_env.setenv("CRON_SECRET", "cron-secret")
    return clean_env


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return path


class TestConfigurationLoading:
    def test_no_file_uses_defaults(self, tmp_path, clean_env):
        clean_env.chdir(tmp_path)
        clean_env.setenv("USE_MOCKS", "true")

        app_config, env_config = load_config()

        assert app_config.business.name == "Puppy Day"
        assert app_config.jobs.reminder_window_start_hours == 23
        assert app_config.scheduler.retry_cron == "*/5 * * * *"
        assert env_config.use_mocks is True

    def test_default_location_is_found(self, tmp_path, clean_env):
        clean_env.chdir(tmp_path)
        _write(tmp_path, "jobs:\n  retry_batch_size: 25\n")

        assert load_app_config().jobs.retry_batch_size == 25

    def test_load_full_file(self, tmp_path):
        path = _write(
            tmp_path,
            """
business:
  name: "Puppy Day Test"
  timezone: "America/New_York"
logging:
  level: DEBUG
  format: json
jobs:
  retention_cooldown_days: 14
notification_defaults:
  appointment_reminder:
    email_enabled: true
    retry_delays_seconds: [10, 20, 40]
""",
        )

        config = load_app_config(path)

        assert config.business.name == "Puppy Day Test"
        assert config.business.timezone == "America/New_York"
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "json"
        assert config.jobs.retention_cooldown_days == 14
        assert config.settings_overrides() == {
            NotificationType.APPOINTMENT_REMINDER: {
                "email_enabled": True,
                "retry_delays_seconds": [10, 20, 40],
            }
        }

    def test_empty_file_is_valid(self, tmp_path):
        assert load_app_config(_write(tmp_path, "")) == AppConfig()

    def test_explicit_missing_file(self):
        with pytest.raises(ConfigurationError) as exc_info:
            load_app_config(Path("nonexistent.yaml"))

        assert "not found" in str(exc_info.value)

    def test_invalid_yaml_syntax(self, tmp_path):
        path = _write(tmp_path, "jobs:\n  retry_batch_size: [unclosed\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_app_config(path)

        assert "Failed to parse YAML" in str(exc_info.value)

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_app_config(_write(tmp_path, "- one\n- two\n"))

    def test_validation_errors_are_collected(self, tmp_path):
        path = _write(
            tmp_path,
            """
jobs:
  retry_batch_size: 0
scheduler:
  retry_cron: "every five minutes"
notification_defaults:
  appointment_reminder:
    colour: blue
""",
        )

        with pytest.raises(ConfigurationError) as exc_info:
            load_app_config(path)

        errors = exc_info.value.errors
        assert len(errors) == 3
        assert any("retry_batch_size" in error for error in errors)
        assert any("Invalid cron expression format" in error for error in errors)
        assert any(error.startswith("Unknown field") for error in errors)

    def test_unknown_notification_type_in_defaults(self, tmp_path):
        path = _write(tmp_path, "notification_defaults:\n  birthday_card:\n    sms_enabled: false\n")

        with pytest.raises(ConfigurationError):
            load_app_config(path)

    def test_wide_reminder_window_warns(self, tmp_path):
        path = _write(tmp_path, "jobs:\n  reminder_window_start_hours: 20\n  reminder_window_end_hours: 30\n")

        with pytest.warns(UserWarning, match="Reminder window"):
            load_app_config(path)


class TestConfigModels:
    def test_reminder_window_must_be_ordered(self):
        with pytest.raises(ValueError):
            JobsConfig(reminder_window_start_hours=25, reminder_window_end_hours=23)

    def test_mock_latency_must_be_ordered(self):
        with pytest.raises(ValueError):
            MockConfig(min_latency_ms=500, max_latency_ms=100)

    def test_unknown_timezone(self):
        with pytest.raises(ValueError):
            AppConfig.model_validate({"business": {"timezone": "Mars/Olympus_Mons"}})

    def test_negative_retry_delay(self):
        with pytest.raises(ValueError):
            NotificationDefaultsConfig(retry_delays_seconds=[30, -1])

    def test_retry_cron_validated(self):
        with pytest.raises(ValueError):
            SchedulerConfig(retry_cron="*/5 * * *")

    def test_business_template_context_omits_timezone(self):
        context = AppConfig().business.template_context()

        assert context["name"] == "Puppy Day"
        assert "timezone" not in context

    def test_warnings_for_risky_values(self):
        warnings = check_for_warnings(
            {
                "jobs": {"retry_batch_size": 900},
                "mock": {"failure_rate": 0.9},
                "scheduler": {"enabled": False},
            }
        )

        assert len(warnings) == 3


class TestCronExpressions:
    @pytest.mark.parametrize("expression", ["0 * * * *", "*/5 * * * *", "0 9 * * 1-5", "30 8 1 */2 *"])
    def test_valid(self, expression):
        assert is_valid_cron_expression(expression) is True

    @pytest.mark.parametrize(
        "expression",
        [None, "", "* * * *", "* * * * * *", "61 * * * *", "0 25 * * *", "not a cron at all", 5],
    )
    def test_invalid(self, expression):
        assert is_valid_cron_expression(expression) is False


class TestEnvironmentConfig:
    def test_load_production_environment(self, production_env):
        env_config = load_environment_config()

        assert env_config.use_mocks is False
        assert env_config.smtp_host == "smtp.test.com"
        assert env_config.smtp_port == 587
        assert env_config.twilio_phone_number == "+16572522903"
        assert env_config.cron_secret == "cron-secret"
        assert env_config.database_url == DEFAULT_DATABASE_URL
        assert env_config.environment == "development"

    def test_missing_credentials_reported_together(self, clean_env):
        with pytest.raises(ConfigurationError) as exc_info:
            load_environment_config()

        missing = [e for e in exc_info.value.errors if e.startswith("Missing required")]
        assert len(missing) == 7

    def test_mock_mode_needs_no_credentials(self, clean_env):
        clean_env.setenv("USE_MOCKS", "yes")
        clean_env.setenv("APP_URL", "https://thepuppyday.com/")

        env_config = load_environment_config()

        assert env_config.use_mocks is True
        assert env_config.app_url == "https://thepuppyday.com"

    def test_invalid_smtp_port(self, production_env):
        production_env.setenv("SMTP_PORT", "invalid")

        with pytest.raises(ConfigurationError) as exc_info:
            load_environment_config()

        assert any("SMTP_PORT" in e for e in exc_info.value.errors)

    def test_invalid_from_email(self, production_env):
        production_env.setenv("SMTP_FROM_EMAIL", "invalid-email")

        with pytest.raises(ConfigurationError) as exc_info:
            load_environment_config()

        assert any("SMTP_FROM_EMAIL" in e for e in exc_info.value.errors)

    def test_twilio_number_must_be_e164(self, production_env):
        production_env.setenv("TWILIO_PHONE_NUMBER", "(657) 252-2903")

        with pytest.raises(ConfigurationError) as exc_info:
            load_environment_config()

        assert any("TWILIO_PHONE_NUMBER" in e for e in exc_info.value.errors)

    def test_smtp_credentials_must_be_paired(self, production_env):
        production_env.delenv("SMTP_PASS")

        with pytest.raises(ConfigurationError) as exc_info:
            load_environment_config()

        assert any("SMTP_USER is set but SMTP_PASS is not" in e for e in exc_info.value.errors)

    def test_invalid_log_level(self, production_env):
        production_env.setenv("LOG_LEVEL", "CHATTY")

        with pytest.raises(ConfigurationError):
            load_environment_config()

    @pytest.mark.parametrize(
        "value,expected",
        [("true", True), ("1", True), (" YES ", True), ("on", True), ("false", False), ("", False), (None, False)],
    )
    def test_is_truthy(self, value, expected):
        assert is_truthy(value) is expected


def test_configuration_error_formats_errors_and_suggestions():
    error = ConfigurationError("Broken", errors=["first", "second"], suggestions=["fix it"])

    text = str(error)

    assert text.startswith("Broken")
    assert "1. first" in text
    assert "2. second" in text
    assert "- fix it" in text
