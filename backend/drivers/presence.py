"""
Calling-layer presence controller for a driver device.

Tracks what the driver *wants* (intent) separately from what the server has
*committed*, so rapid online/offline toggles never leave the UI showing a
state the server does not hold.

    IDLE       no request in flight, displayed == committed
    PENDING    go_online() is acquiring a location / talking to the server
    COMMITTED  server confirmed online; refresh loop is running

Every call to go_online()/go_offline() bumps ``generation``; an in-flight
go_online() checks its captured generation after each await and abandons
itself when it no longer matches.

Collaborators are injected:
    locate()                         -> awaitable (latitude, longitude)
    api.update_location(lat, lng)    -> awaitable
    api.set_online(online: bool)     -> awaitable server status string
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_TIMEOUT = 10.0
DEFAULT_REFRESH_INTERVAL = 300.0


class PresenceIntent(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"


class PresenceError(Exception):
    """go_online() could not complete; ``stage`` says where it stopped."""

    def __init__(self, message: str, stage: str):
        self.stage = stage
        super().__init__(message)


class PresenceController:

    def __init__(
        self,
        api,
        locate: Callable[[], Awaitable[Tuple[float, float]]],
        location_timeout: float = DEFAULT_LOCATION_TIMEOUT,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
    ):
        self.api = api
        self.locate = locate
        self.location_timeout = location_timeout
        self.refresh_interval = refresh_interval

        self.intent = PresenceIntent.IDLE
        self.wants_online = False
        self.displayed_online = False
        self.generation = 0
        self._refresh_task: Optional[asyncio.Task] = None

    # ---------------------- Public API ----------------------

    async def go_online(self) -> bool:
        """
        Acquire a location, persist it, then ask the server to go online.

        Returns True when online was surfaced, False when the attempt was
        superseded by a later go_offline() or go_online().

        Raises:
            PresenceError: location timed out / failed, or the server refused
        """
        self.generation += 1
        generation = self.generation
        self.wants_online = True
        self.intent = PresenceIntent.PENDING

        try:
            latitude, longitude = await asyncio.wait_for(self.locate(), timeout=self.location_timeout)
        except asyncio.TimeoutError:
            self._fail(generation)
            raise PresenceError("Timed out acquiring location", stage="location")
        except Exception as e:
            self._fail(generation)
            raise PresenceError(f"Could not acquire location: {e}", stage="location")

        if self._stale(generation):
            logger.debug("go_online superseded after location acquisition")
            return False

        try:
            await self.api.update_location(latitude, longitude)
        except Exception as e:
            self._fail(generation)
            raise PresenceError(f"Could not save location: {e}", stage="location")

        if self._stale(generation):
            logger.debug("go_online superseded after location persisted")
            return False

        try:
            await self.api.set_online(True)
        except Exception as e:
            self._fail(generation)
            raise PresenceError(f"Location saved but could not go online: {e}", stage="status")

        if self._stale(generation):
            # A newer go_online() owns the server state; only undo when offline is wanted.
            if not self.wants_online:
                logger.info("Reconciling stale online commit with an offline request")
                await self._send_offline()
            return False

        self.intent = PresenceIntent.COMMITTED
        self.displayed_online = True
        self._start_refresh()
        return True

    async def go_offline(self) -> None:
        """Immediately surface offline and tell the server. Idempotent."""
        self.generation += 1
        self.wants_online = False
        self.displayed_online = False
        self.intent = PresenceIntent.IDLE
        self._stop_refresh()
        await self._send_offline()

    async def reconcile(self, server_status: str) -> None:
        """Adopt the server's presence, e.g. after a reconnect or page load."""
        online = server_status == "online"
        self.generation += 1
        self.wants_online = online
        self.displayed_online = online
        if online:
            self.intent = PresenceIntent.COMMITTED
            self._start_refresh()
        else:
            self.intent = PresenceIntent.IDLE
            self._stop_refresh()

    async def close(self) -> None:
        self._stop_refresh()

    # ---------------------- Internals ----------------------

    def _stale(self, generation: int) -> bool:
        return generation != self.generation or not self.wants_online

    def _fail(self, generation: int) -> None:
        if generation != self.generation:
            return
        self.wants_online = False
        self.intent = PresenceIntent.IDLE
        self.displayed_online = False

    async def _send_offline(self) -> None:
        try:
            await self.api.set_online(False)
        except Exception:
            logger.exception("Failed to send offline status")

    def _start_refresh(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.create_task(self._refresh_loop())

    def _stop_refresh(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None

    async def _refresh_loop(self) -> None:
        while self.intent == PresenceIntent.COMMITTED:
            await asyncio.sleep(self.refresh_interval)
            if self.intent != PresenceIntent.COMMITTED:
                break
            try:
                latitude, longitude = await asyncio.wait_for(self.locate(), timeout=self.location_timeout)
                await self.api.update_location(latitude, longitude)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("Periodic location refresh failed: %s", e)
