"""Structured logging helpers for the notification service."""

import logging
from typing import Optional


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its component field with per-call extras."""

    def process(self, msg, kwargs):
        # Call-site extras win over the adapter's defaults
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, component: Optional[str] = None):
    """Get a logger with optional default component field.

    Args:
        name: Logger name (typically __name__)
        component: Optional component identifier to inject into all logs

    Returns:
        Logger or ComponentLoggerAdapter instance

    Example:
        >>> logger = get_logger(__name__, component="dispatch")
        >>> logger.info("Reminder sent", extra={"event": "notification.dispatch.sent"})
    """
    logger = logging.getLogger(name)

    if component:
        return ComponentLoggerAdapter(logger, {"component": component})

    return logger


def mask_recipient(recipient: Optional[str]) -> str:
    """Mask an email address or phone number for log output.

    Keeps enough of the value to correlate with the admin log viewer
    without writing full contact details to log sinks.

    Example:
        >>> mask_recipient("jane.doe@example.com")
        'ja***@example.com'
        >>> mask_recipient("+16575550123")
        '***0123'
    """
    if not recipient:
        return ""

    if "@" in recipient:
        local, _, domain = recipient.partition("@")
        return f"{local[:2]}***@{domain}"

    return f"***{recipient[-4:]}"


__all__ = ["ComponentLoggerAdapter", "get_logger", "mask_recipient"]
