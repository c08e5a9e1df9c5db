"""Driver WebSocket consumer for presence and location updates."""

import logging
from typing import Dict, Any

from channels.db import database_sync_to_async

from .base import BaseConsumer
from common.exceptions import CoreError
from drivers import services as driver_services

logger = logging.getLogger(__name__)


class DriverConsumer(BaseConsumer):
    """
    WebSocket consumer for drivers.

    Handles:
        - Driver location updates (persisted with a freshness stamp)
        - Online/offline toggles (same rules as PUT /api/driver/status/)
        - Booking notifications via the personal user group
    """

    async def on_connect(self):
        """Set up driver-specific groups on connection."""
        if self.role != "driver":
            await self.send_error("This endpoint is for drivers only")
            await self.close()
            return

        # Join driver change feed so other driver sessions stay in sync
        self.driver_group = f"driver_{self.user_id}"
        await self._join_group(self.driver_group)

        status = await self._get_status()
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
            "online_status": status,
            "message": "Driver connected successfully",
        })

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        """Handle driver-specific messages."""

        if msg_type == "driver_location_update":
            await self._handle_location_update(data)
        elif msg_type == "driver_status_update":
            await self._handle_status_update(data)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Message Handlers ----------------------

    async def _handle_location_update(self, data: Dict[str, Any]):
        lat = data.get("latitude")
        lon = data.get("longitude")

        try:
            result = await self._update_location(lat, lon)
        except CoreError as e:
            await self.send_error(e.message, kind=e.kind)
            return

        await self.send_success("location_updated", **result)

    async def _handle_status_update(self, data: Dict[str, Any]):
        """Handle online/offline toggle."""
        online = data.get("online")
        if not isinstance(online, bool):
            await self.send_error("driver_status_update requires boolean 'online'", kind="validation")
            return

        try:
            status = await self._toggle_online(online, data.get("latitude"), data.get("longitude"))
        except CoreError as e:
            await self.send_error(e.message, kind=e.kind)
            return

        await self.send_success("status_updated", online_status=status)

    # ---------------------- Database Helpers ----------------------

    def _profile(self):
        profile = self.user.driver_profile
        profile.refresh_from_db()
        return profile

    @database_sync_to_async
    def _get_status(self):
        return self._profile().online_status

    @database_sync_to_async
    def _update_location(self, lat, lon) -> Dict[str, Any]:
        profile = driver_services.update_location(self._profile(), lat, lon)
        return {
            "latitude": float(profile.current_latitude),
            "longitude": float(profile.current_longitude),
            "online_status": profile.online_status,
        }

    @database_sync_to_async
    def _toggle_online(self, online: bool, lat, lon) -> str:
        profile = driver_services.toggle_online(self._profile(), online, latitude=lat, longitude=lon)
        return profile.online_status
