"""
Booking lifecycle service - Core booking state machine.

This module handles:
    - Creating bookings (with payment authorization)
    - Accepting / rejecting / starting bookings
    - Dual-party completion confirmation
    - Admin force-complete / force-cancel
    - Auto-confirming overdue completions
    - Post-completion driver ratings
"""

from .lifecycle import (
    BookingResult,
    compute_total_cost,
    get_booking_for_actor,
    get_active_bookings,
    create_booking,
    accept_booking,
    reject_booking,
    start_booking,
    driver_confirm,
    client_confirm,
    decline_completion,
    force_complete,
    force_cancel,
    auto_confirm_overdue_bookings,
)
from .ratings import get_booking_rating, rate_driver

__all__ = [
    "BookingResult",
    "compute_total_cost",
    "get_booking_for_actor",
    "get_active_bookings",
    "create_booking",
    "accept_booking",
    "reject_booking",
    "start_booking",
    "driver_confirm",
    "client_confirm",
    "decline_completion",
    "force_complete",
    "force_cancel",
    "auto_confirm_overdue_bookings",
    "rate_driver",
    "get_booking_rating",
]
