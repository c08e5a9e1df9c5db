"""Celery tasks for booking background processing."""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def auto_confirm_overdue_bookings_task():
    """
    Periodic task: confirm on the client's behalf once the driver's
    completion request has gone unanswered for BOOKING_AUTO_CONFIRM_HOURS.
    """
    from services.booking_lifecycle import auto_confirm_overdue_bookings

    completed = auto_confirm_overdue_bookings()
    logger.info("Auto-confirm run completed %s booking(s)", completed)
    return completed
