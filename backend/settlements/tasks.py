"""Celery tasks for payouts and refunds."""

import logging

from celery import shared_task
from django.conf import settings

logger = logging.getLogger(__name__)


@shared_task
def process_settlement_payout(settlement_id: int):
    """Pay the driver's share for a freshly created settlement."""
    from services.settlement import process_payout
    from settlements.models import Settlement

    try:
        settlement = process_payout(settlement_id)
    except Settlement.DoesNotExist:
        logger.warning("Settlement %s not found for payout task", settlement_id)
        return False
    return settlement.settled


@shared_task
def retry_unsettled_payouts():
    """
    Periodic task: re-drive payouts for settlements that are still unsettled
    and below SETTLEMENT_MAX_PAYOUT_ATTEMPTS.
    """
    from services.settlement import process_payout
    from settlements.models import Settlement

    ids = list(
        Settlement.objects.filter(
            settled=False,
            payout_attempts__lt=settings.SETTLEMENT_MAX_PAYOUT_ATTEMPTS,
        ).values_list('id', flat=True)
    )
    settled = 0
    for settlement_id in ids:
        if process_payout(settlement_id).settled:
            settled += 1

    if ids:
        logger.info("Payout retry: %s of %s settlement(s) settled", settled, len(ids))
    return settled


@shared_task
def retry_payment_jobs():
    """Periodic task: re-drive queued refunds."""
    from services.settlement import process_refund_job
    from settlements.models import PaymentJob

    ids = list(
        PaymentJob.objects.filter(
            job_type=PaymentJob.TYPE_REFUND,
            status=PaymentJob.STATUS_PENDING,
        ).values_list('id', flat=True)
    )
    completed = 0
    for job_id in ids:
        if process_refund_job(job_id).status == PaymentJob.STATUS_COMPLETED:
            completed += 1

    if ids:
        logger.info("Refund retry: %s of %s job(s) completed", completed, len(ids))
    return completed
