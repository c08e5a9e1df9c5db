"""
Dispute lifecycle and escalation.

    open -> investigating -> resolved -> closed
    open | investigating -> closed

Administrative overrides of the disputed booking itself (force complete /
force cancel) live in the booking lifecycle module and reference the
dispute in their audit rows.
"""

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied

from accounts.actors import AdminActor, ClientActor, DriverActor
from bookings.models import Booking
from common.exceptions import ConflictError, ValidationError
from disputes.models import Dispute
from realtime.notifications import email_admins, notify

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    Dispute.STATUS_OPEN: {Dispute.STATUS_INVESTIGATING, Dispute.STATUS_CLOSED},
    Dispute.STATUS_INVESTIGATING: {Dispute.STATUS_RESOLVED, Dispute.STATUS_CLOSED},
    Dispute.STATUS_RESOLVED: {Dispute.STATUS_CLOSED},
    Dispute.STATUS_CLOSED: set(),
}

DISPUTE_TYPES = {choice for choice, _ in Dispute.TYPE_CHOICES}
PRIORITIES = {choice for choice, _ in Dispute.PRIORITY_CHOICES}


def has_unresolved_dispute(booking: Booking) -> bool:
    return Dispute.objects.filter(booking=booking, status__in=Dispute.UNRESOLVED_STATUSES).exists()


def get_dispute_for_booking(dispute_id, booking: Booking) -> Optional[Dispute]:
    """Resolve an optional dispute reference for an admin override."""
    if dispute_id in (None, ""):
        return None
    try:
        return Dispute.objects.get(pk=dispute_id, booking=booking)
    except (Dispute.DoesNotExist, ValueError):
        raise ValidationError("Dispute does not belong to this booking")


def open_dispute(actor, booking_id, dispute_type: str, description: str) -> Dispute:
    """
    Raise a dispute on a booking the actor took part in.

    Raises:
        ValidationError: unknown type or empty description
        PermissionDenied: actor is not the booking's client or driver
    """
    if dispute_type not in DISPUTE_TYPES:
        raise ValidationError(f"dispute_type must be one of: {', '.join(sorted(DISPUTE_TYPES))}")
    if not description or not description.strip():
        raise ValidationError("A description is required")

    try:
        booking = Booking.objects.select_related('driver').get(pk=booking_id)
    except Booking.DoesNotExist:
        raise NotFound("Booking not found")

    if isinstance(actor, ClientActor) and booking.client_id == actor.id:
        role = 'client'
    elif isinstance(actor, DriverActor) and booking.driver_id == actor.profile.id:
        role = 'driver'
    else:
        raise PermissionDenied("Only the booking's client or driver can raise a dispute")

    dispute = Dispute.objects.create(
        booking=booking,
        reported_by=actor.user,
        reporter_role=role,
        dispute_type=dispute_type,
        description=description.strip(),
    )
    logger.info("Dispute %s opened on booking %s by %s %s", dispute.id, booking.id, role, actor.id)

    transaction.on_commit(lambda: email_admins(
        f"New dispute on booking #{booking.id}",
        f"A {role} raised a {dispute_type} dispute: {dispute.description}",
    ))
    return dispute


def escalate_declines(booking: Booking, client, decline_count: int) -> Optional[Dispute]:
    """Open a high-priority dispute after repeated completion declines."""
    if has_unresolved_dispute(booking):
        return None

    dispute = Dispute.objects.create(
        booking=booking,
        reported_by=client,
        reporter_role='client',
        dispute_type='service_quality',
        priority='high',
        description=(
            f"Client declined the driver's completion request {decline_count} times. "
            "Opened automatically for admin review."
        ),
    )
    logger.warning("Booking %s escalated to dispute %s after %s declines", booking.id, dispute.id, decline_count)

    transaction.on_commit(lambda: email_admins(
        f"Booking #{booking.id} escalated",
        f"Completion was declined {decline_count} times. Dispute #{dispute.id} needs review.",
    ))
    return dispute


@transaction.atomic
def update_dispute(
    admin: AdminActor,
    dispute_id,
    status: str = None,
    priority: str = None,
    resolution: str = None,
    admin_notes: str = None,
) -> Dispute:
    """
    Move a dispute through its workflow and/or edit admin fields.

    Raises:
        ValidationError: unknown status or priority
        ConflictError: status move not allowed from the current status
    """
    try:
        dispute = Dispute.objects.select_for_update().get(pk=dispute_id)
    except Dispute.DoesNotExist:
        raise NotFound("Dispute not found")

    fields = []

    if status is not None and status != dispute.status:
        if status not in ALLOWED_TRANSITIONS:
            raise ValidationError(f"Unknown dispute status: {status}")
        if status not in ALLOWED_TRANSITIONS[dispute.status]:
            raise ConflictError(f"Cannot move dispute from {dispute.status} to {status}")

        previous = dispute.status
        dispute.status = status
        fields.append('status')
        if status in (Dispute.STATUS_RESOLVED, Dispute.STATUS_CLOSED) and dispute.resolved_at is None:
            dispute.resolved_by = admin.user
            dispute.resolved_at = timezone.now()
            fields += ['resolved_by', 'resolved_at']
        logger.info("Dispute %s: %s -> %s by admin %s", dispute.id, previous, status, admin.id)

    if priority is not None:
        if priority not in PRIORITIES:
            raise ValidationError(f"Unknown priority: {priority}")
        dispute.priority = priority
        fields.append('priority')

    if resolution is not None:
        dispute.resolution = resolution
        fields.append('resolution')

    if admin_notes is not None:
        dispute.admin_notes = admin_notes
        fields.append('admin_notes')

    if fields:
        dispute.save(update_fields=fields + ['updated_at'])

    if 'status' in fields:
        reporter_id = dispute.reported_by_id
        message = f"Your dispute #{dispute.id} is now {dispute.status}."
        transaction.on_commit(lambda: notify(
            'dispute_updated', reporter_id, message, extra={'booking_id': dispute.booking_id}
        ))
    return dispute
