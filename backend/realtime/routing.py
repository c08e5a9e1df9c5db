"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers.booking_consumer import BookingConsumer
from .consumers.driver_consumer import DriverConsumer

websocket_urlpatterns = [
    # Driver presence + location
    # URL: ws://localhost:8000/ws/driver/?token=<jwt>
    re_path(
        r"ws/driver/$",
        DriverConsumer.as_asgi(),
        name="driver-ws"
    ),

    # Booking change feed (clients, drivers, admins)
    # URL: ws://localhost:8000/ws/booking/?token=<jwt>
    re_path(
        r"ws/booking/$",
        BookingConsumer.as_asgi(),
        name="booking-ws"
    ),
]
