"""SMTP email transport.

A thin wrapper around smtplib with TLS/SSL support, authentication and
connection lifecycle management, exposed through the EmailTransport contract.
"""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Callable, Optional

from email_validator import EmailNotValidError, validate_email

from app.config.environment import EnvironmentConfig
from app.logging import mask_recipient

from .models import EmailParams, SendResult, SMTPDeliveryError
from .transports import EmailTransport

logger = logging.getLogger(__name__)


class SMTPClient:
    """Wrapper around smtplib for sending email messages.

    Handles connection lifecycle, TLS/SSL negotiation and authentication.
    The smtplib classes can be injected for testing.
    """

    def __init__(
        self,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
        timeout: int = 30,
    ):
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL
        self.timeout = timeout

    def send(self, message: EmailMessage, env_config: EnvironmentConfig, use_tls: bool = True) -> None:
        """Send an email message via SMTP.

        Port 465 uses implicit TLS; any other port upgrades with STARTTLS
        when ``use_tls`` is set.

        Raises:
            SMTPDeliveryError: If message delivery fails
        """
        smtp = None
        try:
            if env_config.smtp_port == 465:
                logger.debug(f"Connecting to {env_config.smtp_host}:{env_config.smtp_port} with implicit TLS")
                context = ssl.create_default_context()
                smtp = self.smtp_ssl_factory(
                    env_config.smtp_host, env_config.smtp_port, context=context, timeout=self.timeout
                )
            else:
                logger.debug(f"Connecting to {env_config.smtp_host}:{env_config.smtp_port}")
                smtp = self.smtp_factory(env_config.smtp_host, env_config.smtp_port, timeout=self.timeout)

                if use_tls:
                    smtp.starttls(context=ssl.create_default_context())

            if env_config.smtp_user and env_config.smtp_pass:
                smtp.login(env_config.smtp_user, env_config.smtp_pass)

            smtp.send_message(message)

        except smtplib.SMTPResponseException as e:
            raise SMTPDeliveryError(
                f"SMTP error {e.smtp_code} during message delivery: {_decode(e.smtp_error)}",
                status_code=_smtp_to_http_status(e.smtp_code),
            ) from e
        except smtplib.SMTPRecipientsRefused as e:
            raise SMTPDeliveryError(f"Invalid recipient rejected by SMTP server: {e}", status_code=400) from e
        except smtplib.SMTPException as e:
            raise SMTPDeliveryError(f"SMTP error during message delivery: {e}") from e
        except OSError as e:
            raise SMTPDeliveryError(f"Network error during SMTP connection: {e}") from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError) as e:
                    logger.warning(f"Error closing SMTP connection: {e}")


class SMTPEmailTransport(EmailTransport):
    """EmailTransport backed by an SMTP server."""

    def __init__(self, env_config: EnvironmentConfig, client: Optional[SMTPClient] = None, use_tls: bool = True):
        self.env_config = env_config
        self.client = client or SMTPClient()
        self.use_tls = use_tls

    def send(self, params: EmailParams) -> SendResult:
        try:
            recipient = validate_email(params.to, check_deliverability=False).normalized
        except EmailNotValidError as e:
            return SendResult(success=False, error=f"Invalid email address: {params.to} ({e})", status_code=400)

        message = EmailMessage()
        message_id = make_msgid(domain=_sender_domain(self.env_config))
        message["Subject"] = params.subject
        message["From"] = params.from_ or build_sender_address(self.env_config)
        message["To"] = recipient
        message["Message-ID"] = message_id
        message.set_content(params.text)
        if params.html:
            message.add_alternative(params.html, subtype="html")

        self.client.send(message, self.env_config, self.use_tls)
        logger.debug(f"Email accepted by SMTP server for {mask_recipient(recipient)}")

        return SendResult(success=True, message_id=message_id.strip("<>"))


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """Build the 'From' address, e.g. ``Puppy Day <puppyday14936@gmail.com>``.

    Falls back to SMTP_USER, then to a noreply address at the SMTP host.
    """
    sender_email = env_config.smtp_from_email or env_config.smtp_user or f"noreply@{env_config.smtp_host}"
    return f"{env_config.smtp_sender_name} <{sender_email}>"


def _sender_domain(env_config: EnvironmentConfig) -> str:
    address = env_config.smtp_from_email or env_config.smtp_user or ""
    return address.rpartition("@")[2] or (env_config.smtp_host or "localhost")


def _decode(value) -> str:
    return value.decode("utf-8", "replace") if isinstance(value, bytes) else str(value)


def _smtp_to_http_status(smtp_code: int) -> Optional[int]:
    # 4xx SMTP replies are temporary, 5xx permanent
    if 400 <= smtp_code < 500:
        return 503
    if smtp_code in (550, 551, 553):
        return 400
    return None
