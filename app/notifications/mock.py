"""Mock transports for development and tests.

They honour the same contract as the SMTP and Twilio transports, add a
simulated network delay and a configurable random failure rate, and keep
every message for inspection.
"""

import random
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Union

from email_validator import EmailNotValidError, validate_email

from app.logging import get_logger, mask_recipient
from app.utils.timestamps import utc_now

from .models import EmailParams, SendResult, SMSParams
from .templates import sms_segment_count
from .transports import EmailTransport, SMSTransport

logger = get_logger(__name__, component="mock_transport")

MOCK_FROM_NUMBER = "+16572522903"
US_E164_PATTERN = re.compile(r"^\+1\d{10}$")


@dataclass
class StoredMessage:
    params: Union[EmailParams, SMSParams]
    message_id: str
    sent_at: datetime
    success: bool
    segment_count: Optional[int] = None
    error: Optional[str] = None


class _MockTransportBase:
    channel_label = "message"

    def __init__(
        self,
        failure_rate: float = 0.03,
        min_latency_ms: int = 150,
        max_latency_ms: int = 400,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            failure_rate: Probability of a simulated failure, clamped to 0..1
            min_latency_ms: Lower bound of the simulated delay
            max_latency_ms: Upper bound of the simulated delay
            rng: Random source (seed it for deterministic tests)
            sleep: Sleep function (pass a no-op to skip delays)
        """
        self.failure_rate = max(0.0, min(1.0, failure_rate))
        self.min_latency_ms = max(0, min_latency_ms)
        self.max_latency_ms = max(self.min_latency_ms, max_latency_ms)
        self.rng = rng or random.Random()
        self.sleep = sleep
        self.sent_messages: List[StoredMessage] = []

    def clear(self) -> None:
        self.sent_messages.clear()

    @property
    def successful_messages(self) -> List[StoredMessage]:
        return [message for message in self.sent_messages if message.success]

    def _simulate_latency(self) -> int:
        delay_ms = self.rng.randint(self.min_latency_ms, self.max_latency_ms)
        if delay_ms:
            self.sleep(delay_ms / 1000.0)
        return delay_ms

    def _should_fail(self) -> bool:
        return self.rng.random() < self.failure_rate

    def _simulated_failure(self) -> str:
        return f"Mock {self.channel_label} send failed (simulated random failure)"


class MockSMSTransport(_MockTransportBase, SMSTransport):
    """SMS transport that only accepts US numbers in E.164 form."""

    channel_label = "SMS"

    def send(self, params: SMSParams) -> SendResult:
        if not US_E164_PATTERN.match(params.to or ""):
            error = f"Invalid phone number format: {params.to}. Must start with +1"
            logger.info(
                f"Mock SMS rejected: {error}",
                extra={"event": "mock.sms.invalid", "recipient": mask_recipient(params.to)},
            )
            return SendResult(success=False, error=error, status_code=400)

        delay_ms = self._simulate_latency()
        sid = f"SM{uuid.uuid4().hex}"
        segments = sms_segment_count(params.body)

        if self._should_fail():
            error = self._simulated_failure()
            self.sent_messages.append(StoredMessage(params, sid, utc_now(), False, segments, error))
            logger.info(
                f"Mock SMS failed for {mask_recipient(params.to)}",
                extra={"event": "mock.sms.failed", "delay_ms": delay_ms, "segments": segments},
            )
            return SendResult(success=False, error=error)

        self.sent_messages.append(StoredMessage(params, sid, utc_now(), True, segments))
        logger.info(
            f"Mock SMS sent to {mask_recipient(params.to)} from {params.from_ or MOCK_FROM_NUMBER}",
            extra={
                "event": "mock.sms.sent",
                "message_id": sid,
                "body_length": len(params.body),
                "segments": segments,
                "delay_ms": delay_ms,
            },
        )
        return SendResult(success=True, message_id=sid, segment_count=segments)


class MockEmailTransport(_MockTransportBase, EmailTransport):
    """Email transport that checks address syntax only."""

    channel_label = "email"

    def send(self, params: EmailParams) -> SendResult:
        try:
            validate_email(params.to or "", check_deliverability=False)
        except EmailNotValidError as e:
            error = f"Invalid email address: {params.to} ({e})"
            logger.info(f"Mock email rejected: {error}", extra={"event": "mock.email.invalid"})
            return SendResult(success=False, error=error, status_code=400)

        delay_ms = self._simulate_latency()
        message_id = f"mock-{uuid.uuid4().hex}"

        if self._should_fail():
            error = self._simulated_failure()
            self.sent_messages.append(StoredMessage(params, message_id, utc_now(), False, error=error))
            logger.info(
                f"Mock email failed for {mask_recipient(params.to)}",
                extra={"event": "mock.email.failed", "delay_ms": delay_ms},
            )
            return SendResult(success=False, error=error)

        self.sent_messages.append(StoredMessage(params, message_id, utc_now(), True))
        logger.info(
            f"Mock email sent to {mask_recipient(params.to)}: {params.subject}",
            extra={"event": "mock.email.sent", "message_id": message_id, "delay_ms": delay_ms},
        )
        return SendResult(success=True, message_id=message_id)
