"""Environment variable loading and validation."""

import os
import re
from typing import Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

TRUTHY_VALUES = {"1", "true", "yes", "on"}

DEFAULT_DATABASE_URL = "sqlite:///./data/puppy_day.db"
DEFAULT_APP_URL = "http://localhost:3000"

_E164_PATTERN = re.compile(r"^\+[1-9]\d{7,14}$")


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        cron_secret: Optional[str] = None,
        admin_api_token: Optional[str] = None,
        use_mocks: bool = False,
        app_url: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        smtp_from_email: Optional[str] = None,
        smtp_sender_name: Optional[str] = None,
        twilio_account_sid: Optional[str] = None,
        twilio_auth_token: Optional[str] = None,
        twilio_phone_number: Optional[str] = None,
        log_level: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.cron_secret = cron_secret
        self.admin_api_token = admin_api_token
        self.use_mocks = use_mocks
        self.app_url = (app_url or DEFAULT_APP_URL).rstrip("/")
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port or 587
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.smtp_from_email = smtp_from_email
        self.smtp_sender_name = smtp_sender_name or "Puppy Day"
        self.twilio_account_sid = twilio_account_sid
        self.twilio_auth_token = twilio_auth_token
        self.twilio_phone_number = twilio_phone_number
        self.log_level = log_level
        self.environment = environment or "development"


def is_truthy(value: Optional[str]) -> bool:
    """Interpret an environment flag such as USE_MOCKS."""
    return bool(value) and value.strip().lower() in TRUTHY_VALUES


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Always read:
    - DATABASE_URL: SQLAlchemy URL (default: sqlite:///./data/puppy_day.db)
    - USE_MOCKS: use mock transports and skip bearer checks
    - APP_URL: public site URL used to build booking and claim links
    - CRON_SECRET: bearer token for /cron endpoints
    - ADMIN_API_TOKEN: bearer token for /admin endpoints
    - LOG_LEVEL, ENVIRONMENT

    Required unless USE_MOCKS is set:
    - SMTP_HOST, SMTP_PORT, SMTP_FROM_EMAIL (SMTP_USER/SMTP_PASS optional, but paired)
    - TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER
    - CRON_SECRET

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    errors = []

    use_mocks = is_truthy(os.getenv("USE_MOCKS"))

    smtp_host = os.getenv("SMTP_HOST")
    smtp_port_str = os.getenv("SMTP_PORT")
    smtp_user = os.getenv("SMTP_USER")
    smtp_pass = os.getenv("SMTP_PASS")
    smtp_from_email = os.getenv("SMTP_FROM_EMAIL")
    twilio_account_sid = os.getenv("TWILIO_ACCOUNT_SID")
    twilio_auth_token = os.getenv("TWILIO_AUTH_TOKEN")
    twilio_phone_number = os.getenv("TWILIO_PHONE_NUMBER")
    cron_secret = os.getenv("CRON_SECRET")
    log_level = os.getenv("LOG_LEVEL")
    app_url = os.getenv("APP_URL")

    if not use_mocks:
        required = {
            "SMTP_HOST": smtp_host,
            "SMTP_PORT": smtp_port_str,
            "SMTP_FROM_EMAIL": smtp_from_email,
            "TWILIO_ACCOUNT_SID": twilio_account_sid,
            "TWILIO_AUTH_TOKEN": twilio_auth_token,
            "TWILIO_PHONE_NUMBER": twilio_phone_number,
            "CRON_SECRET": cron_secret,
        }
        for name, value in required.items():
            if not value:
                errors.append(f"Missing required environment variable: {name}")

    smtp_port = None
    if smtp_port_str:
        try:
            smtp_port = int(smtp_port_str)
            if smtp_port < 1 or smtp_port > 65535:
                errors.append(f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535.")
        except ValueError:
            errors.append(f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer.")

    if smtp_from_email:
        try:
            validate_email(smtp_from_email, check_deliverability=False)
        except EmailNotValidError as e:
            errors.append(f"Invalid email address in SMTP_FROM_EMAIL: '{smtp_from_email}' ({e})")

    if twilio_phone_number and not _E164_PATTERN.match(twilio_phone_number):
        errors.append(
            f"Invalid TWILIO_PHONE_NUMBER: '{twilio_phone_number}'. Must be E.164, e.g. +16572522903."
        )

    if smtp_user and not smtp_pass:
        errors.append("SMTP_USER is set but SMTP_PASS is not. Both must be set for authentication.")
    elif smtp_pass and not smtp_user:
        errors.append("SMTP_PASS is set but SMTP_USER is not. Both must be set for authentication.")

    if log_level:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if log_level.upper() not in valid_levels:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(valid_levels)}"
            )

    if app_url and not app_url.startswith(("http://", "https://")):
        errors.append(f"Invalid APP_URL: '{app_url}'. Must start with http:// or https://")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Set USE_MOCKS=true to run without SMTP and Twilio credentials",
                "Verify SMTP_PORT is a number between 1 and 65535",
            ],
        )

    return EnvironmentConfig(
        database_url=os.getenv("DATABASE_URL"),
        cron_secret=cron_secret,
        admin_api_token=os.getenv("ADMIN_API_TOKEN"),
        use_mocks=use_mocks,
        app_url=app_url,
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        smtp_from_email=smtp_from_email,
        smtp_sender_name=os.getenv("SMTP_SENDER_NAME"),
        twilio_account_sid=twilio_account_sid,
        twilio_auth_token=twilio_auth_token,
        twilio_phone_number=twilio_phone_number,
        log_level=log_level,
        environment=os.getenv("ENVIRONMENT"),
    )
