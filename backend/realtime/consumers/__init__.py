"""Realtime consumers for WebSocket communication."""

from .base import BaseConsumer
from .booking_consumer import BookingConsumer
from .driver_consumer import DriverConsumer

__all__ = [
    "BaseConsumer",
    "BookingConsumer",
    "DriverConsumer",
]
