"""
Settlement service - fare split, payouts and refunds.
"""

from .engine import (
    current_commission,
    publish_commission,
    compute_split,
    authorize_hold,
    settle_booking,
    process_payout,
    release_hold,
    queue_refund,
    process_refund_job,
)

__all__ = [
    "current_commission",
    "publish_commission",
    "compute_split",
    "authorize_hold",
    "settle_booking",
    "process_payout",
    "release_hold",
    "queue_refund",
    "process_refund_job",
]
