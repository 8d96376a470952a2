"""Twilio SMS transport over the Twilio REST API."""

from typing import Optional

import requests

from app.config.environment import EnvironmentConfig
from app.logging import get_logger, mask_recipient

from .models import SendResult, SMSParams, TransportError
from .templates import sms_segment_count
from .transports import SMSTransport

logger = get_logger(__name__, component="sms")

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioSMSTransport(SMSTransport):
    """Sends SMS through Twilio's Messages resource.

    HTTP error responses become failed SendResults carrying Twilio's message
    and status code; connection problems raise TransportError.
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        timeout: int = 15,
        session: Optional[requests.Session] = None,
    ):
        self.account_sid = env_config.twilio_account_sid
        self.from_number = env_config.twilio_phone_number
        self.timeout = timeout

        self._session = session or requests.Session()
        self._session.auth = (env_config.twilio_account_sid, env_config.twilio_auth_token)
        self._session.headers.update({"User-Agent": "PuppyDayNotifications/1.0"})

    @property
    def messages_url(self) -> str:
        return f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"

    def send(self, params: SMSParams) -> SendResult:
        form = {"To": params.to, "From": params.from_ or self.from_number, "Body": params.body}

        try:
            response = self._session.post(self.messages_url, data=form, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Twilio request timeout after {self.timeout}s") from e
        except requests.exceptions.ConnectionError as e:
            raise TransportError(f"Twilio connection error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Twilio request failed: {e}") from e

        payload = _json_or_empty(response)

        if response.status_code >= 400:
            error = payload.get("message") or f"HTTP {response.status_code}: {response.reason}"
            logger.warning(
                f"Twilio rejected SMS to {mask_recipient(params.to)}: {error}",
                extra={
                    "event": "sms.send.rejected",
                    "status_code": response.status_code,
                    "twilio_code": payload.get("code"),
                },
            )
            return SendResult(success=False, error=error, status_code=response.status_code)

        segments = payload.get("num_segments")
        return SendResult(
            success=True,
            message_id=payload.get("sid"),
            status_code=response.status_code,
            segment_count=int(segments) if segments else sms_segment_count(params.body),
        )


def _json_or_empty(response: requests.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
