"""Transport interfaces for email and SMS delivery.

Production transports (SMTP, Twilio) and the mock transports implement the
same contract so the Dispatch Engine never knows which one it talks to.
"""

from abc import ABC, abstractmethod

from .models import EmailParams, SendResult, SMSParams


class EmailTransport(ABC):
    """Sends one email message."""

    @abstractmethod
    def send(self, params: EmailParams) -> SendResult:
        """Deliver ``params``.

        Provider rejections are returned as ``SendResult(success=False)``;
        connection-level failures may raise TransportError.
        """


class SMSTransport(ABC):
    """Sends one SMS message."""

    @abstractmethod
    def send(self, params: SMSParams) -> SendResult:
        """Deliver ``params``. Same error contract as EmailTransport.send."""
