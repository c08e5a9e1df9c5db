"""
Notification helpers for sending WebSocket messages to connected clients.

This module provides functions to:
- Publish row-change events (bookings, drivers, verification records)
- Send fire-and-forget notifications to a single user
- Email active admins for alerts that need a human

Every helper logs and swallows delivery failures: a notification can never
roll back or fail the state change that produced it.
"""

from __future__ import annotations

import logging
from typing import Dict, Any, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def _group_send(group: str, payload: Dict[str, Any]) -> bool:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False
    try:
        async_to_sync(channel_layer.group_send)(group, payload)
        return True
    except Exception:
        logger.exception("Failed to send %s to group %s", payload.get("type"), group)
        return False


# ---------------------- Change Feed ----------------------

def publish_change(resource: str, resource_id: int, **fields) -> bool:
    """
    Emit a row-change event on ``<resource>_<id>``.

    Args:
        resource: "booking", "driver" or "verification"
        resource_id: primary key (user id for driver/verification)
        fields: small status snapshot (never full rows)
    """
    payload = {
        "type": "resource_changed",
        "resource": resource,
        "id": resource_id,
        **fields,
    }
    logger.debug("change feed -> %s_%s: %s", resource, resource_id, fields)
    return _group_send(f"{resource}_{resource_id}", payload)


# ---------------------- User Notifications ----------------------

def notify(event: str, recipient_id: Optional[int], message: str = "", extra: Dict[str, Any] = None) -> bool:
    """
    Fire-and-forget notification to a user's personal group: user_<id>

    Returns:
        True if handed to the channel layer, False otherwise
    """
    if not recipient_id:
        return False

    payload = {
        "type": "notification",
        "event": event,
        "message": message,
        **(extra or {}),
    }
    logger.debug("WS -> user_%s: %s", recipient_id, event)
    return _group_send(f"user_{recipient_id}", payload)


def notify_booking_event(event: str, booking, message: str = "", recipients=None) -> None:
    """
    Publish a booking change and notify its participants.

    Args:
        event: e.g. "booking_accepted", "booking_completed"
        booking: Booking instance
        message: human readable text
        recipients: user ids to notify (defaults to client and driver)
    """
    publish_change(
        "booking",
        booking.id,
        booking_status=booking.booking_status,
        payment_status=booking.payment_status,
    )

    if recipients is None:
        recipients = [booking.client_id, booking.driver.user_id]

    for user_id in recipients:
        notify(event, user_id, message, extra={"booking_id": booking.id})


def notify_driver_presence(profile) -> None:
    """Publish a driver presence/location change."""
    publish_change(
        "driver",
        profile.user_id,
        online_status=profile.online_status,
        latitude=float(profile.current_latitude) if profile.current_latitude is not None else None,
        longitude=float(profile.current_longitude) if profile.current_longitude is not None else None,
    )


# ---------------------- Email ----------------------

def email_admins(subject: str, message: str) -> int:
    """Email every active admin; returns the number of messages sent."""
    User = get_user_model()
    recipients = list(
        User.objects.filter(role="admin", is_active=True)
        .exclude(email="")
        .values_list("email", flat=True)
    )
    if not recipients:
        return 0

    try:
        return send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, recipients)
    except Exception:
        logger.exception("Failed to email admins: %s", subject)
        return 0
