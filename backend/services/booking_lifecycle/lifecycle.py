"""
Core booking lifecycle operations.

    pending --accept--> accepted --start--> ongoing --both confirm--> completed
    pending --reject--> cancelled
    pending | accepted | ongoing --force_cancel (admin)--> cancelled
    pending | accepted | ongoing --force_complete (admin)--> completed

Completion always goes through a conditional UPDATE on the status column, so
when the second confirmation and an admin force-complete race, exactly one
caller moves the row and only that caller creates the Settlement.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Dict, Any

from django.conf import settings
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from accounts.actors import AdminActor, ClientActor, DriverActor
from bookings.models import AdminBookingAction, Booking, CompletionDecline
from common.exceptions import ConflictError, ValidationError
from common.utils.geo import calculate_distance_km, validate_coordinates
from drivers.models import DriverProfile
from drivers.services import ineligibility_reason
from realtime.notifications import notify_booking_event
from services.disputes import escalate_declines, get_dispute_for_booking, has_unresolved_dispute
from services.identity_verification import is_client_verified
from services.settlement import authorize_hold, release_hold, settle_booking

logger = logging.getLogger(__name__)

ENGAGED_STATUSES = (Booking.STATUS_ACCEPTED, Booking.STATUS_ONGOING)


@dataclass
class BookingResult:
    """Result object for booking operations."""
    booking: Booking
    message: str = ""
    changed: bool = True
    extra: Optional[Dict[str, Any]] = None


# ===================== Helpers =====================

def _lock_booking(booking_id) -> Booking:
    try:
        return Booking.objects.select_for_update().select_related('driver').get(pk=booking_id)
    except (Booking.DoesNotExist, ValueError):
        raise NotFound("Booking not found")


def _require_assigned_driver(booking: Booking, actor: DriverActor):
    if booking.driver_id != actor.profile.id:
        raise PermissionDenied("Only the assigned driver can perform this action")


def _require_booking_client(booking: Booking, actor: ClientActor):
    if booking.client_id != actor.id:
        raise PermissionDenied("Only the booking's client can perform this action")


def _require_status(booking: Booking, *statuses):
    if booking.booking_status not in statuses:
        raise ConflictError(
            f"Booking is {booking.booking_status}; expected {' or '.join(statuses)}"
        )


def _validate_admin_reason(reason) -> str:
    reason = (reason or "").strip()
    if len(reason) < settings.ADMIN_REASON_MIN_LENGTH:
        raise ValidationError(
            f"A reason of at least {settings.ADMIN_REASON_MIN_LENGTH} characters is required"
        )
    return reason


def _positive_decimal(value, label: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{label} must be a number")
    if not number.is_finite() or number <= 0:
        raise ValidationError(f"{label} must be greater than zero")
    return number


def _after_commit(event: str, booking: Booking, message: str, recipients=None):
    transaction.on_commit(lambda: notify_booking_event(event, booking, message, recipients))


def _complete_if_ongoing(booking: Booking, statuses=(Booking.STATUS_ONGOING,)) -> bool:
    """
    Conditional transition to completed. Returns True only for the caller
    whose UPDATE matched the row; that caller settles the booking.
    """
    now = timezone.now()
    updated = Booking.objects.filter(pk=booking.pk, booking_status__in=statuses).update(
        booking_status=Booking.STATUS_COMPLETED,
        completed_at=now,
        updated_at=now,
    )
    if updated != 1:
        return False

    DriverProfile.objects.filter(pk=booking.driver_id).update(total_trips=F('total_trips') + 1)
    booking.refresh_from_db()
    settle_booking(booking)
    logger.info("Booking %s completed", booking.id)
    return True


def compute_total_cost(hourly_rate, duration_hr, distance_km) -> Decimal:
    """round(hourly_rate * duration + distance * BOOKING_RATE_PER_KM) in whole units."""
    rate_per_km = Decimal(str(settings.BOOKING_RATE_PER_KM))
    total = Decimal(hourly_rate) * Decimal(duration_hr) + Decimal(distance_km) * rate_per_km
    return total.quantize(Decimal('1'), rounding=ROUND_HALF_UP)


# ===================== Queries =====================

def get_booking_for_actor(actor, booking_id) -> Booking:
    """Fetch a booking the actor may see (participants and admins)."""
    try:
        booking = Booking.objects.select_related('driver__user', 'client').get(pk=booking_id)
    except (Booking.DoesNotExist, ValueError):
        raise NotFound("Booking not found")

    if isinstance(actor, AdminActor):
        return booking
    if isinstance(actor, ClientActor) and booking.client_id == actor.id:
        return booking
    if isinstance(actor, DriverActor) and booking.driver_id == actor.profile.id:
        return booking
    raise NotFound("Booking not found")


def get_active_bookings(actor):
    """Non-terminal bookings for a client or driver."""
    qs = Booking.objects.filter(booking_status__in=Booking.ACTIVE_STATUSES).select_related('driver__user', 'client')
    if isinstance(actor, ClientActor):
        return qs.filter(client_id=actor.id)
    if isinstance(actor, DriverActor):
        return qs.filter(driver_id=actor.profile.id)
    return qs


# ===================== Client Operations =====================

def create_booking(
    client: ClientActor,
    driver_id,
    start_location: str,
    destination: str,
    start_latitude,
    start_longitude,
    destination_latitude,
    destination_longitude,
    duration_hr,
    distance_km=None,
    scheduled_time=None,
) -> BookingResult:
    """
    Request a driver. Places the payment authorization hold first; a
    processor failure leaves no booking behind.

    Raises:
        ValidationError: bad route, unverified client, ineligible driver
        ExternalServiceError: payment authorization failed
    """
    if not start_location or not str(start_location).strip():
        raise ValidationError("Start location is required")
    if not destination or not str(destination).strip():
        raise ValidationError("Destination is required")

    start_lat, start_lng = validate_coordinates(start_latitude, start_longitude, "start location")
    dest_lat, dest_lng = validate_coordinates(destination_latitude, destination_longitude, "destination")
    duration = _positive_decimal(duration_hr, "Duration")

    if distance_km in (None, ""):
        distance = Decimal(str(calculate_distance_km(start_lat, start_lng, dest_lat, dest_lng)))
    else:
        try:
            distance = Decimal(str(distance_km))
        except (InvalidOperation, ValueError):
            raise ValidationError("Distance must be a number")
        if not distance.is_finite() or distance < 0:
            raise ValidationError("Distance cannot be negative")

    if not is_client_verified(client.user):
        raise ValidationError("Verify your identity before booking a driver")

    try:
        driver = DriverProfile.objects.select_related('user').get(pk=driver_id)
    except (DriverProfile.DoesNotExist, ValueError, TypeError):
        raise ValidationError("Driver not found")

    reason = ineligibility_reason(driver)
    if reason:
        raise ValidationError(f"{reason}; choose another driver")

    hourly_rate = driver.hourly_rate
    if hourly_rate is None or hourly_rate <= 0:
        raise ValidationError("Driver has no hourly rate set")
    total_cost = compute_total_cost(hourly_rate, duration, distance)

    hold_ref = authorize_hold(total_cost)

    with transaction.atomic():
        booking = Booking.objects.create(
            client=client.user,
            driver=driver,
            start_location=str(start_location).strip(),
            destination=str(destination).strip(),
            start_latitude=Decimal(str(round(start_lat, 6))),
            start_longitude=Decimal(str(round(start_lng, 6))),
            destination_latitude=Decimal(str(round(dest_lat, 6))),
            destination_longitude=Decimal(str(round(dest_lng, 6))),
            distance_km=distance.quantize(Decimal('0.001')),
            duration_hr=duration,
            scheduled_time=scheduled_time,
            hourly_rate=hourly_rate,
            total_cost=total_cost,
            booking_status=Booking.STATUS_PENDING,
            payment_status=Booking.PAYMENT_AUTHORIZED,
            payment_hold_ref=hold_ref,
        )
        _after_commit(
            'booking_requested', booking,
            f"New booking request from {client.user.get_username()}.",
            recipients=[driver.user_id],
        )

    logger.info("Booking %s created: client=%s driver=%s total=%s", booking.id, client.id, driver.id, total_cost)
    return BookingResult(booking=booking, message="Booking requested. Waiting for the driver to accept.")


def client_confirm(client: ClientActor, booking_id) -> BookingResult:
    """
    Client confirms the trip is finished. Completes the booking when the
    driver has already confirmed. Idempotent.

    Raises:
        ConflictError: booking not ongoing, or an unresolved dispute exists
    """
    return _confirm_as_client(booking_id, client=client)


def _confirm_as_client(booking_id, client: ClientActor = None, auto: bool = False) -> BookingResult:
    with transaction.atomic():
        booking = _lock_booking(booking_id)
        if client is not None:
            _require_booking_client(booking, client)

        if booking.client_confirmed:
            return BookingResult(booking=booking, message="Already confirmed", changed=False)

        _require_status(booking, Booking.STATUS_ONGOING)
        if has_unresolved_dispute(booking):
            raise ConflictError("This booking has an open dispute; wait for an admin to resolve it")

        booking.client_confirmed = True
        booking.client_confirmed_at = timezone.now()
        booking.save(update_fields=['client_confirmed', 'client_confirmed_at', 'updated_at'])

        completed = booking.driver_confirmed and _complete_if_ongoing(booking)

        if completed:
            _after_commit('booking_completed', booking, "Trip completed. Payment is being released.")
            message = "Trip completed"
        else:
            _after_commit(
                'client_confirmed', booking,
                "The client confirmed the trip has ended.",
                recipients=[booking.driver.user_id],
            )
            message = "Confirmation recorded. Waiting for the driver."

    if auto:
        logger.info("Booking %s auto-confirmed for client", booking.id)
    return BookingResult(booking=booking, message=message, extra={"completed": completed})


def decline_completion(client: ClientActor, booking_id, reason: str = "") -> BookingResult:
    """
    Client refuses the driver's completion request. The driver's flag and
    the booking status are left as they are; repeated declines escalate to
    a dispute.
    """
    with transaction.atomic():
        booking = _lock_booking(booking_id)
        _require_booking_client(booking, client)
        _require_status(booking, Booking.STATUS_ONGOING)
        if not booking.driver_confirmed:
            raise ConflictError("The driver has not requested completion")

        CompletionDecline.objects.create(booking=booking, client=client.user, reason=(reason or "").strip())
        declines = booking.completion_declines.count()

        dispute = None
        if declines >= settings.BOOKING_DECLINE_ESCALATION_THRESHOLD:
            dispute = escalate_declines(booking, client.user, declines)

        _after_commit(
            'completion_declined', booking,
            f"The client declined completion: {reason or 'no reason given'}",
            recipients=[booking.driver.user_id],
        )

    logger.info("Booking %s completion declined by client (%s total)", booking.id, declines)
    return BookingResult(
        booking=booking,
        message="Completion declined",
        extra={"declines": declines, "dispute_id": dispute.id if dispute else None},
    )


# ===================== Driver Operations =====================

def accept_booking(driver: DriverActor, booking_id) -> BookingResult:
    """
    Raises:
        PermissionDenied: not the assigned driver
        ConflictError: booking not pending, or driver already engaged
    """
    with transaction.atomic():
        # Serializes concurrent accepts by the same driver.
        DriverProfile.objects.select_for_update().get(pk=driver.profile.id)
        booking = _lock_booking(booking_id)
        _require_assigned_driver(booking, driver)
        _require_status(booking, Booking.STATUS_PENDING)

        engaged = Booking.objects.filter(
            driver_id=driver.profile.id, booking_status__in=ENGAGED_STATUSES
        ).exclude(pk=booking.pk)
        if engaged.exists():
            raise ConflictError("Finish your current booking before accepting another")

        booking.booking_status = Booking.STATUS_ACCEPTED
        booking.accepted_at = timezone.now()
        booking.save(update_fields=['booking_status', 'accepted_at', 'updated_at'])

        _after_commit(
            'booking_accepted', booking,
            "Your driver accepted the booking.",
            recipients=[booking.client_id],
        )

    logger.info("Booking %s accepted by driver %s", booking.id, driver.profile.id)
    return BookingResult(booking=booking, message="Booking accepted")


def reject_booking(driver: DriverActor, booking_id, reason: str = "") -> BookingResult:
    """Driver declines a pending booking; the payment hold is released after commit."""
    with transaction.atomic():
        booking = _lock_booking(booking_id)
        _require_assigned_driver(booking, driver)
        _require_status(booking, Booking.STATUS_PENDING)

        booking.booking_status = Booking.STATUS_CANCELLED
        booking.cancelled_at = timezone.now()
        booking.cancellation_reason = (reason or "").strip() or "Rejected by driver"
        booking.save(update_fields=['booking_status', 'cancelled_at', 'cancellation_reason', 'updated_at'])

        transaction.on_commit(lambda: release_hold(booking))
        _after_commit(
            'booking_rejected', booking,
            "The driver declined your booking. Your payment hold will be released.",
            recipients=[booking.client_id],
        )

    logger.info("Booking %s rejected by driver %s", booking.id, driver.profile.id)
    return BookingResult(booking=booking, message="Booking rejected")


def start_booking(driver: DriverActor, booking_id) -> BookingResult:
    with transaction.atomic():
        booking = _lock_booking(booking_id)
        _require_assigned_driver(booking, driver)
        _require_status(booking, Booking.STATUS_ACCEPTED)

        booking.booking_status = Booking.STATUS_ONGOING
        booking.started_at = timezone.now()
        booking.save(update_fields=['booking_status', 'started_at', 'updated_at'])

        _after_commit('booking_started', booking, "Your trip has started.", recipients=[booking.client_id])

    logger.info("Booking %s started", booking.id)
    return BookingResult(booking=booking, message="Trip started")


def driver_confirm(driver: DriverActor, booking_id) -> BookingResult:
    """
    Driver requests completion. Completes the booking when the client has
    already confirmed. Idempotent.
    """
    with transaction.atomic():
        booking = _lock_booking(booking_id)
        _require_assigned_driver(booking, driver)

        if booking.driver_confirmed:
            return BookingResult(booking=booking, message="Already confirmed", changed=False)

        _require_status(booking, Booking.STATUS_ONGOING)

        booking.driver_confirmed = True
        booking.driver_confirmed_at = timezone.now()
        booking.save(update_fields=['driver_confirmed', 'driver_confirmed_at', 'updated_at'])

        completed = booking.client_confirmed and _complete_if_ongoing(booking)

        if completed:
            _after_commit('booking_completed', booking, "Trip completed. Payment is being released.")
            message = "Trip completed"
        else:
            _after_commit(
                'completion_requested', booking,
                "Your driver marked the trip as finished. Please confirm.",
                recipients=[booking.client_id],
            )
            message = "Completion requested. Waiting for the client."

    return BookingResult(booking=booking, message=message, extra={"completed": completed})


# ===================== Admin Overrides =====================

def force_complete(admin: AdminActor, booking_id, reason: str, dispute_id=None) -> BookingResult:
    """
    Complete any non-terminal booking under admin authority and settle it.

    Raises:
        ValidationError: reason too short, or dispute belongs to another booking
        ConflictError: booking already terminal
    """
    reason = _validate_admin_reason(reason)

    with transaction.atomic():
        booking = _lock_booking(booking_id)
        dispute = get_dispute_for_booking(dispute_id, booking)

        if booking.is_terminal:
            raise ConflictError(f"Booking is already {booking.booking_status}")

        previous = booking.booking_status
        if not _complete_if_ongoing(booking, statuses=Booking.ACTIVE_STATUSES):
            raise ConflictError("Booking changed state; reload and retry")

        AdminBookingAction.objects.create(
            booking=booking,
            admin=admin.user,
            action_type=AdminBookingAction.ACTION_FORCE_COMPLETE,
            previous_status=previous,
            new_status=Booking.STATUS_COMPLETED,
            reason=reason,
            dispute=dispute,
            metadata={
                "driver_confirmed": booking.driver_confirmed,
                "client_confirmed": booking.client_confirmed,
            },
        )
        _after_commit('booking_completed', booking, "An admin completed this booking.")

    logger.warning("Booking %s force-completed by admin %s: %s", booking.id, admin.id, reason)
    return BookingResult(booking=booking, message="Booking force-completed")


def force_cancel(admin: AdminActor, booking_id, reason: str, refund: bool = False, dispute_id=None) -> BookingResult:
    """
    Cancel any non-terminal booking under admin authority. With ``refund``
    the payment hold is refunded after commit. Settlements are never touched.

    Raises:
        ValidationError: reason too short, or dispute belongs to another booking
        ConflictError: booking already terminal
    """
    reason = _validate_admin_reason(reason)

    with transaction.atomic():
        booking = _lock_booking(booking_id)
        dispute = get_dispute_for_booking(dispute_id, booking)

        if booking.is_terminal:
            raise ConflictError(f"Booking is already {booking.booking_status}")

        previous = booking.booking_status
        now = timezone.now()
        updated = Booking.objects.filter(
            pk=booking.pk, booking_status__in=Booking.ACTIVE_STATUSES
        ).update(
            booking_status=Booking.STATUS_CANCELLED,
            cancelled_at=now,
            cancellation_reason=reason,
            updated_at=now,
        )
        if updated != 1:
            raise ConflictError("Booking changed state; reload and retry")
        booking.refresh_from_db()

        will_refund = refund and booking.payment_status in (Booking.PAYMENT_PAID, Booking.PAYMENT_AUTHORIZED)

        AdminBookingAction.objects.create(
            booking=booking,
            admin=admin.user,
            action_type=AdminBookingAction.ACTION_FORCE_CANCEL,
            previous_status=previous,
            new_status=Booking.STATUS_CANCELLED,
            reason=reason,
            dispute=dispute,
            metadata={"refund_requested": refund, "refund_issued": will_refund},
        )

        if will_refund:
            transaction.on_commit(lambda: release_hold(booking))
        _after_commit('booking_cancelled', booking, "An admin cancelled this booking.")

    logger.warning("Booking %s force-cancelled by admin %s (refund=%s): %s", booking.id, admin.id, refund, reason)
    return BookingResult(booking=booking, message="Booking force-cancelled", extra={"refund": will_refund})


# ===================== Background =====================

def auto_confirm_overdue_bookings(now=None) -> int:
    """
    Confirm on the client's behalf when the driver confirmed more than
    BOOKING_AUTO_CONFIRM_HOURS ago and the client has neither confirmed,
    declined since, nor opened a dispute.

    Returns:
        Number of bookings completed
    """
    now = now or timezone.now()
    cutoff = now - timedelta(hours=settings.BOOKING_AUTO_CONFIRM_HOURS)

    candidates = (
        Booking.objects.filter(
            booking_status=Booking.STATUS_ONGOING,
            driver_confirmed=True,
            client_confirmed=False,
            driver_confirmed_at__lte=cutoff,
        )
        .exclude(disputes__status__in=('open', 'investigating'))
        .exclude(
            Q(completion_declines__created_at__gt=F('driver_confirmed_at'))
        )
        .values_list('id', flat=True)
        .distinct()
    )

    completed = 0
    for booking_id in list(candidates):
        try:
            result = _confirm_as_client(booking_id, auto=True)
        except (ConflictError, NotFound) as e:
            # State moved on since the query; nothing to do.
            logger.info("Skipping auto-confirm for booking %s: %s", booking_id, e)
            continue
        if result.extra and result.extra.get("completed"):
            completed += 1

    if completed:
        logger.info("Auto-confirmed %s overdue booking(s)", completed)
    return completed
