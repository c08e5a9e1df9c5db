"""
Identity verification service - submissions, lockout and admin review.
"""

from .attempts import (
    VerificationResult,
    submit_verification,
    review_verification,
    verification_status,
    is_client_verified,
    hash_id_number,
)

__all__ = [
    "VerificationResult",
    "submit_verification",
    "review_verification",
    "verification_status",
    "is_client_verified",
    "hash_id_number",
]
