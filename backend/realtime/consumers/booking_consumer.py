"""Booking change-feed consumer shared by clients, drivers and admins."""

import logging
from typing import Dict, Any

from channels.db import database_sync_to_async

from .base import BaseConsumer

logger = logging.getLogger(__name__)


class BookingConsumer(BaseConsumer):
    """
    Subscribe to ``booking_<id>`` groups.

    Messages:
        {"type": "subscribe_booking", "booking_id": 12}
        {"type": "unsubscribe_booking", "booking_id": 12}

    Events delivered are ``resource_changed`` payloads carrying the booking
    id and its status; subscribers refetch the booking over HTTP.
    """

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "subscribe_booking":
            await self._handle_subscribe(data)
        elif msg_type == "unsubscribe_booking":
            await self._handle_unsubscribe(data)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    async def _handle_subscribe(self, data: Dict[str, Any]):
        booking_id = data.get("booking_id")
        if not booking_id:
            await self.send_error("subscribe_booking requires booking_id", kind="validation")
            return

        if not await self._can_view(booking_id):
            await self.send_error("Booking not found or not accessible", kind="permission")
            return

        await self._join_group(f"booking_{booking_id}")
        await self.send_success("subscribed", booking_id=booking_id)

    async def _handle_unsubscribe(self, data: Dict[str, Any]):
        booking_id = data.get("booking_id")
        await self._leave_group(f"booking_{booking_id}")
        await self.send_success("unsubscribed", booking_id=booking_id)

    @database_sync_to_async
    def _can_view(self, booking_id) -> bool:
        from bookings.models import Booking

        try:
            booking = Booking.objects.select_related("driver").get(pk=booking_id)
        except (Booking.DoesNotExist, ValueError):
            return False

        if self.role == "admin" or self.user.is_superuser:
            return True
        return self.user_id in (booking.client_id, booking.driver.user_id)
