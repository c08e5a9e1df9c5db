"""
Settlement / commission engine.

``settle_booking`` runs inside the transaction that completed the booking and
creates at most one Settlement per booking. The driver payout happens after
commit in a Celery task; its failure is recorded on the Settlement (and its
PaymentJob row) and retried by beat, never rolled back into the booking.

Rounding: driver_share = round_half_up(total * (100 - pct) / 100) to whole
currency units; platform_share takes the remainder so the two always sum to
the fare exactly.
"""

import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Tuple

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone

from bookings.models import Booking
from common.exceptions import ConflictError, ExternalServiceError, ValidationError
from realtime.notifications import notify, publish_change
from services.gateways.payments import PaymentProcessorError, get_payment_processor
from settlements.models import CommissionConfig, PaymentJob, Settlement

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


# ===================== Commission Config =====================

def current_commission() -> Tuple[Decimal, int]:
    """Return (percentage, version) currently in effect."""
    config = CommissionConfig.objects.order_by('-version').first()
    if config is None:
        return Decimal(str(settings.PLATFORM_DEFAULT_COMMISSION)), 0
    return config.percentage, config.version


@transaction.atomic
def publish_commission(admin_user, percentage) -> CommissionConfig:
    """
    Publish a new commission version. Existing settlements keep the
    percentage they snapshotted.

    Raises:
        ValidationError: percentage missing or outside [0, 100]
        ConflictError: another admin published the same version concurrently
    """
    try:
        value = Decimal(str(percentage))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Commission percentage must be a number")
    if value.is_nan() or value < 0 or value > HUNDRED:
        raise ValidationError("Commission percentage must be between 0 and 100")

    latest = CommissionConfig.objects.aggregate(latest=Max('version'))['latest'] or 0
    try:
        with transaction.atomic():
            config = CommissionConfig.objects.create(
                version=latest + 1,
                percentage=value.quantize(Decimal('0.01')),
                created_by=admin_user,
            )
    except IntegrityError:
        raise ConflictError("Commission was updated concurrently; reload and retry")

    logger.info("Commission v%s published: %s%% by %s", config.version, config.percentage, admin_user)
    return config


# ===================== Split =====================

def compute_split(total_fare, percentage) -> Tuple[Decimal, Decimal]:
    """Return (platform_share, driver_share) for a fare and commission percentage."""
    total = Decimal(str(total_fare))
    pct = Decimal(str(percentage))
    driver_share = (total * (HUNDRED - pct) / HUNDRED).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    platform_share = total - driver_share
    return platform_share, driver_share


# ===================== Settlement =====================

def settle_booking(booking: Booking) -> Settlement:
    """
    Create the booking's Settlement (idempotent) and schedule the payout
    after the surrounding transaction commits.

    Returns:
        The new or already-existing Settlement
    """
    percentage, version = current_commission()
    platform_share, driver_share = compute_split(booking.total_cost, percentage)

    with transaction.atomic():
        settlement, created = Settlement.objects.get_or_create(
            booking=booking,
            defaults={
                'total_fare': booking.total_cost,
                'commission_percentage': percentage,
                'commission_version': version,
                'platform_share': platform_share,
                'driver_share': driver_share,
            },
        )

    if not created:
        logger.info("Settlement for booking %s already exists; skipping", booking.id)
        return settlement

    PaymentJob.objects.get_or_create(
        idempotency_key=f"payout_{booking.id}",
        defaults={
            'booking': booking,
            'job_type': PaymentJob.TYPE_PAYOUT,
            'max_attempts': settings.SETTLEMENT_MAX_PAYOUT_ATTEMPTS,
        },
    )

    logger.info(
        "Booking %s settled: fare=%s pct=%s (v%s) platform=%s driver=%s",
        booking.id, settlement.total_fare, percentage, version, platform_share, driver_share,
    )

    settlement_id = settlement.id
    transaction.on_commit(lambda: _enqueue_payout(settlement_id))
    return settlement


def _enqueue_payout(settlement_id: int) -> None:
    from settlements.tasks import process_settlement_payout

    try:
        process_settlement_payout.delay(settlement_id)
    except Exception:
        # Broker down: the beat retry picks the unsettled row up later.
        logger.exception("Could not enqueue payout for settlement %s", settlement_id)


def _claim_job(job: PaymentJob, now) -> bool:
    """
    Mark a locked PaymentJob as processing and count the attempt. Returns
    False when the job is done or another worker's claim is still live.
    """
    if job.status == PaymentJob.STATUS_COMPLETED:
        return False
    lease = timedelta(seconds=settings.GATEWAY_CLAIM_SECONDS)
    if (
        job.status == PaymentJob.STATUS_PROCESSING
        and job.last_attempt_at is not None
        and now - job.last_attempt_at < lease
    ):
        return False

    job.status = PaymentJob.STATUS_PROCESSING
    job.attempts += 1
    job.last_attempt_at = now
    job.save(update_fields=['status', 'attempts', 'last_attempt_at'])
    return True


def _record_job_failure(job: PaymentJob, error: str) -> None:
    job.error_message = error
    job.status = PaymentJob.STATUS_FAILED if job.attempts >= job.max_attempts else PaymentJob.STATUS_PENDING
    job.save(update_fields=['error_message', 'status'])


def _record_job_success(job: PaymentJob, reference: str, now) -> None:
    job.status = PaymentJob.STATUS_COMPLETED
    job.reference = reference
    job.processed_at = now
    job.error_message = ''
    job.save(update_fields=['status', 'reference', 'processed_at', 'error_message'])


def process_payout(settlement_id: int) -> Settlement:
    """
    Pay the driver's share for one settlement. Safe to call repeatedly:
    a settled row, or one whose payout another worker has claimed, is
    returned untouched.

    The payout job is claimed in one short transaction and the outcome
    recorded in another; the processor call itself holds no row locks.
    """
    with transaction.atomic():
        settlement = (
            Settlement.objects.select_for_update()
            .select_related('booking__driver')
            .get(pk=settlement_id)
        )
        if settlement.settled:
            return settlement

        booking = settlement.booking
        job, _ = PaymentJob.objects.select_for_update().get_or_create(
            idempotency_key=f"payout_{booking.id}",
            defaults={
                'booking': booking,
                'job_type': PaymentJob.TYPE_PAYOUT,
                'max_attempts': settings.SETTLEMENT_MAX_PAYOUT_ATTEMPTS,
            },
        )
        if not _claim_job(job, timezone.now()):
            logger.info("Payout for booking %s is already being processed", booking.id)
            return settlement

        settlement.payout_attempts += 1
        settlement.save(update_fields=['payout_attempts'])

    try:
        reference = get_payment_processor().payout(
            booking.id, settlement.driver_share, booking.driver.payout_account
        )
    except PaymentProcessorError as e:
        with transaction.atomic():
            settlement.last_payout_error = str(e)
            settlement.save(update_fields=['last_payout_error'])
            Booking.objects.filter(pk=booking.pk).update(
                payment_status=Booking.PAYMENT_FAILED, updated_at=timezone.now()
            )
            _record_job_failure(job, str(e))
        logger.warning(
            "Payout failed for booking %s (attempt %s): %s",
            booking.id, settlement.payout_attempts, e,
        )
        return settlement

    now = timezone.now()
    with transaction.atomic():
        settlement.settled = True
        settlement.payout_reference = reference or ''
        settlement.settled_at = now
        settlement.last_payout_error = ''
        settlement.save(update_fields=['settled', 'payout_reference', 'settled_at', 'last_payout_error'])
        Booking.objects.filter(pk=booking.pk).update(
            payment_status=Booking.PAYMENT_PAID, updated_at=now
        )
        _record_job_success(job, settlement.payout_reference, now)

    logger.info("Payout for booking %s succeeded: %s", booking.id, settlement.payout_reference)
    publish_change('booking', booking.id, booking_status=booking.booking_status, payment_status=Booking.PAYMENT_PAID)
    notify(
        'payment_released',
        booking.driver.user_id,
        f"Payment of {settlement.driver_share} for booking #{booking.id} has been released.",
        extra={'booking_id': booking.id},
    )
    return settlement


# ===================== Holds & Refunds =====================

def authorize_hold(amount) -> str:
    """
    Place the payment authorization hold for a new booking.

    Raises:
        ExternalServiceError: processor declined or unreachable
    """
    try:
        return get_payment_processor().authorize(amount)
    except PaymentProcessorError as e:
        logger.warning("Payment authorization for %s failed: %s", amount, e)
        raise ExternalServiceError("Payment authorization failed. Please try again.")


def release_hold(booking: Booking) -> bool:
    """
    Refund / release the booking's payment hold. Call after the cancelling
    transaction has committed. Failure is logged and queued as a refund
    PaymentJob; the cancellation itself is never reverted.

    Returns:
        True when the processor confirmed the refund now
    """
    if not booking.payment_hold_ref:
        logger.info("Booking %s has no payment hold to release", booking.id)
        return False

    try:
        reference = get_payment_processor().refund(booking.payment_hold_ref)
    except PaymentProcessorError as e:
        logger.error("Refund failed for booking %s: %s; queued for retry", booking.id, e)
        queue_refund(booking, error=str(e))
        return False

    Booking.objects.filter(pk=booking.pk).update(
        payment_status=Booking.PAYMENT_REFUNDED, updated_at=timezone.now()
    )
    booking.payment_status = Booking.PAYMENT_REFUNDED
    logger.info("Refund for booking %s succeeded: %s", booking.id, reference)
    return True


def queue_refund(booking: Booking, error: str = '') -> PaymentJob:
    job, created = PaymentJob.objects.get_or_create(
        idempotency_key=f"refund_{booking.id}",
        defaults={
            'booking': booking,
            'job_type': PaymentJob.TYPE_REFUND,
            'attempts': 1 if error else 0,
            'last_attempt_at': timezone.now() if error else None,
            'error_message': error,
            'max_attempts': settings.SETTLEMENT_MAX_PAYOUT_ATTEMPTS,
        },
    )
    if not created:
        logger.info("Refund job for booking %s already queued", booking.id)
    return job


def process_refund_job(job_id: int) -> PaymentJob:
    """
    Re-drive one queued refund. Completed jobs, and jobs another worker has
    claimed, are returned untouched. The processor call holds no row locks.
    """
    with transaction.atomic():
        job = PaymentJob.objects.select_for_update().select_related('booking').get(pk=job_id)
        if not _claim_job(job, timezone.now()):
            return job
    booking = job.booking

    try:
        reference = get_payment_processor().refund(booking.payment_hold_ref)
    except PaymentProcessorError as e:
        _record_job_failure(job, str(e))
        logger.warning("Refund retry failed for booking %s (attempt %s): %s", booking.id, job.attempts, e)
        return job

    now = timezone.now()
    with transaction.atomic():
        _record_job_success(job, reference or '', now)
        Booking.objects.filter(pk=booking.pk).update(payment_status=Booking.PAYMENT_REFUNDED, updated_at=now)

    logger.info("Refund retry for booking %s succeeded", booking.id)
    return job
