"""
Post-completion driver ratings.

One rating per booking, written by the booking's client once the booking is
completed. Re-rating replaces the score. The driver's ``rating`` is the mean
of all scores they have received, kept in step inside the same transaction.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from django.db import transaction
from django.db.models import Avg

from accounts.actors import ClientActor
from bookings.models import Booking, Rating
from common.exceptions import ConflictError, ValidationError
from drivers.models import DriverProfile
from realtime.notifications import notify
from .lifecycle import _lock_booking, _require_booking_client

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5


def _validate_score(score) -> int:
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationError("Rating must be a whole number")
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(f"Rating must be between {MIN_SCORE} and {MAX_SCORE}")
    return score


def rate_driver(client: ClientActor, booking_id, score, review: str = "") -> Rating:
    """
    Record or replace the client's rating for a completed booking.

    Raises:
        ValidationError: score not a whole number from 1 to 5
        PermissionDenied: caller is not the booking's client
        ConflictError: booking is not completed
    """
    score = _validate_score(score)

    with transaction.atomic():
        booking = _lock_booking(booking_id)
        _require_booking_client(booking, client)
        if booking.booking_status != Booking.STATUS_COMPLETED:
            raise ConflictError("Only completed bookings can be rated")

        rating, created = Rating.objects.update_or_create(
            booking=booking,
            defaults={
                'client_id': client.id,
                'driver_id': booking.driver_id,
                'score': score,
                'review': (review or "").strip(),
            },
        )

        average = Rating.objects.filter(driver_id=booking.driver_id).aggregate(avg=Avg('score'))['avg']
        driver_rating = Decimal(str(average)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        DriverProfile.objects.filter(pk=booking.driver_id).update(rating=driver_rating)

        driver_user_id = booking.driver.user_id
        transaction.on_commit(lambda: notify(
            'rating_received',
            driver_user_id,
            f"You received a {score}-star rating for booking #{booking.id}.",
            extra={'booking_id': booking.id},
        ))

    logger.info(
        "Client %s %s booking %s: %s/5 (driver %s now %s)",
        client.id, "rated" if created else "re-rated", booking.id, score, booking.driver_id, driver_rating,
    )
    return rating


def get_booking_rating(booking: Booking) -> Optional[Rating]:
    return Rating.objects.filter(booking=booking).first()
