"""
Dispute service - raising, escalating and working disputes.
"""

from .controller import (
    open_dispute,
    update_dispute,
    escalate_declines,
    has_unresolved_dispute,
    get_dispute_for_booking,
)

__all__ = [
    "open_dispute",
    "update_dispute",
    "escalate_declines",
    "has_unresolved_dispute",
    "get_dispute_for_booking",
]
