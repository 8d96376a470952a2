"""Customer notification preferences and channel selection.

Preferences live in the customer's JSON ``preferences`` column. Missing keys
default to "allowed".
"""

from typing import Dict, Optional, Tuple

from app.domain.models import (
    CHANNEL_ORDER,
    TRANSACTIONAL_TYPES,
    Channel,
    Customer,
    NotificationSettings,
    NotificationType,
)

from .payloads import normalize_phone

# (type, channel) -> preference key that must not be False
CHANNEL_PREFERENCE_KEYS = {
    (NotificationType.APPOINTMENT_REMINDER, Channel.EMAIL): "email_appointment_reminders",
    (NotificationType.APPOINTMENT_REMINDER, Channel.SMS): "sms_appointment_reminders",
    (NotificationType.RETENTION_REMINDER, Channel.EMAIL): "email_retention_reminders",
    (NotificationType.RETENTION_REMINDER, Channel.SMS): "sms_retention_reminders",
}


def is_marketing_opted_out(customer: Customer) -> bool:
    prefs = customer.preferences or {}
    return prefs.get("marketing_opt_out") is True or prefs.get("marketing_enabled") is False


def channel_allowed(customer: Customer, notification_type: NotificationType, channel: Channel) -> Tuple[bool, Optional[str]]:
    """Check the customer's per-channel preference for a type.

    Transactional types ignore preferences.

    Returns:
        Tuple of (allowed, reason when not allowed)
    """
    if notification_type in TRANSACTIONAL_TYPES:
        return True, None

    key = CHANNEL_PREFERENCE_KEYS.get((notification_type, channel))
    if key is not None and (customer.preferences or {}).get(key) is False:
        return False, f"customer_preference_{key}_disabled"

    return True, None


def contact_for(customer: Customer, channel: Channel) -> Optional[str]:
    if channel == Channel.EMAIL:
        return customer.email
    return normalize_phone(customer.phone) if customer.phone else None


def resolve_recipients(
    customer: Customer,
    notification_type: NotificationType,
    settings: NotificationSettings,
) -> Tuple[Dict[Channel, str], str]:
    """Channels that will fire for this customer, with their addresses.

    A channel fires when it is enabled for the type, the customer has not
    turned it off, and the customer has contact data for it.

    Returns:
        Tuple of (recipients in email-then-SMS order, reason when empty)
    """
    recipients: Dict[Channel, str] = {}
    reasons = []

    for channel in CHANNEL_ORDER:
        if not settings.channel_enabled(channel):
            reasons.append(f"{channel.value}_disabled")
            continue

        allowed, reason = channel_allowed(customer, notification_type, channel)
        if not allowed:
            reasons.append(reason)
            continue

        address = contact_for(customer, channel)
        if not address:
            reasons.append(f"no_{channel.value}_contact")
            continue

        recipients[channel] = address

    if recipients:
        return recipients, ""

    return recipients, "no_enabled_channel: " + ", ".join(reasons)
