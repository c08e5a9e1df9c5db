"""
Identity verification attempt / lockout machine.

    unverified --score >= threshold--> verified
    unverified --score <  threshold--> unverified (attempts += 1) | locked (3rd)
    unverified --no score returned---> pending_manual
    locked | pending_manual --admin approve--> verified
    locked | pending_manual --admin reject---> locked
    locked | pending_manual --admin unlock---> unverified (attempts reset)

A submission claims the state row (``submission_started_at``) in one short
transaction, calls the provider outside any transaction, then records the
outcome under a fresh row lock. A second submission while the claim is live
gets ConflictError, so two concurrent submissions cannot both consume the
last attempt.
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.crypto import salted_hmac

from common.exceptions import ConflictError, ExternalServiceError, LockedError, ValidationError
from realtime.notifications import email_admins, notify, publish_change
from services.gateways.identity import IdentityProviderError, get_identity_provider
from verification.models import ClientVerificationState, VerificationAttempt

logger = logging.getLogger(__name__)

ID_NUMBER_PATTERN = re.compile(r"^\d{11}$")
DATA_URL_PREFIX = re.compile(r"^data:image/[a-zA-Z+.-]+;base64,")

REVIEW_ACTIONS = ("approve", "reject", "unlock")


@dataclass
class VerificationResult:
    """Outcome of a submission, shaped for the HTTP response."""
    state: str
    verified: bool
    attempts_remaining: int
    confidence: Optional[float] = None
    message: str = ""


def hash_id_number(id_number: str) -> str:
    return salted_hmac("verification.id_number", id_number, algorithm="sha256").hexdigest()


def _validate_submission(id_number, photo):
    if not isinstance(id_number, str) or not ID_NUMBER_PATTERN.match(id_number):
        raise ValidationError("ID number must be exactly 11 digits")

    if not isinstance(photo, str) or not photo.strip():
        raise ValidationError("A photo is required")

    encoded = DATA_URL_PREFIX.sub("", photo.strip())
    try:
        decoded = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Photo must be a base64 encoded image")
    if not decoded:
        raise ValidationError("Photo must be a base64 encoded image")


def verification_status(client) -> VerificationResult:
    """Current state for a client; clients who never submitted are unverified."""
    state = ClientVerificationState.objects.filter(client=client).first()
    if state is None:
        return VerificationResult(
            state=ClientVerificationState.STATE_UNVERIFIED,
            verified=False,
            attempts_remaining=settings.IDENTITY_MAX_ATTEMPTS,
        )
    return VerificationResult(
        state=state.state,
        verified=state.state == ClientVerificationState.STATE_VERIFIED,
        attempts_remaining=state.attempts_remaining,
        confidence=state.last_confidence_score,
    )


def is_client_verified(client) -> bool:
    return ClientVerificationState.objects.filter(
        client=client, state=ClientVerificationState.STATE_VERIFIED
    ).exists()


def _claim_submission(client) -> ClientVerificationState:
    """
    Check the client may submit and mark a submission in flight. The row lock
    is released on return so the provider call never runs under it.
    """
    with transaction.atomic():
        state, _ = ClientVerificationState.objects.select_for_update().get_or_create(client=client)

        if state.state == ClientVerificationState.STATE_VERIFIED:
            raise ConflictError("Identity is already verified")
        if state.state == ClientVerificationState.STATE_LOCKED:
            raise LockedError()
        if state.state == ClientVerificationState.STATE_PENDING_MANUAL:
            raise ConflictError("Verification is awaiting manual review")

        now = timezone.now()
        lease = timedelta(seconds=settings.GATEWAY_CLAIM_SECONDS)
        if state.submission_started_at and now - state.submission_started_at < lease:
            raise ConflictError("A verification is already in progress")

        state.submission_started_at = now
        state.save(update_fields=["submission_started_at"])
    return state


def submit_verification(client, id_number, photo) -> VerificationResult:
    """
    Submit an identity number and photo for automatic matching.

    Raises:
        ValidationError: malformed id number or photo (no state change)
        ConflictError: already verified, awaiting manual review, or another
            submission is in flight
        LockedError: attempts exhausted
        ExternalServiceError: provider unavailable (attempt not consumed)
    """
    _validate_submission(id_number, photo)

    id_hash = hash_id_number(id_number)
    threshold = settings.IDENTITY_CONFIDENCE_THRESHOLD
    max_attempts = settings.IDENTITY_MAX_ATTEMPTS

    state = _claim_submission(client)
    request_metadata = {"has_photo": True, "attempt_number": state.attempts_count + 1}

    try:
        match = get_identity_provider().verify(id_number, photo)
    except IdentityProviderError as e:
        logger.warning("Identity provider error for client %s: %s", client.id, e)
        with transaction.atomic():
            ClientVerificationState.objects.filter(pk=state.pk).update(submission_started_at=None)
            VerificationAttempt.objects.create(
                client=client,
                id_number_hash=id_hash,
                status="error",
                request_metadata=request_metadata,
                response_metadata={"status_code": e.status_code},
                failure_reason=str(e),
            )
        raise ExternalServiceError("Identity service is unavailable. Please try again shortly.")

    with transaction.atomic():
        state = ClientVerificationState.objects.select_for_update().get(pk=state.pk)
        now = timezone.now()
        state.submission_started_at = None
        state.last_attempt_at = now
        state.last_confidence_score = match.confidence
        if match.reference_id:
            state.reference_id = match.reference_id

        if match.confidence is None:
            state.state = ClientVerificationState.STATE_PENDING_MANUAL
            attempt_status = "pending_manual"
            message = "Your verification needs a manual review. We'll notify you once it's done."
        elif match.confidence >= threshold:
            state.state = ClientVerificationState.STATE_VERIFIED
            state.verified_at = now
            attempt_status = "success"
            message = "Identity verified successfully"
        else:
            state.attempts_count = min(state.attempts_count + 1, max_attempts)
            attempt_status = "failed"
            if state.attempts_count >= max_attempts:
                state.state = ClientVerificationState.STATE_LOCKED
                message = "Verification failed and has been locked. Please contact support."
            else:
                state.state = ClientVerificationState.STATE_UNVERIFIED
                message = (
                    f"Verification failed. {max_attempts - state.attempts_count} attempt(s) remaining."
                )

        state.save()
        VerificationAttempt.objects.create(
            client=client,
            id_number_hash=id_hash,
            status=attempt_status,
            confidence_score=match.confidence,
            request_metadata=request_metadata,
            response_metadata={**match.raw, "reference_id": match.reference_id},
            failure_reason="" if attempt_status != "failed" else f"Confidence {match.confidence} below {threshold}",
        )

        client_id = client.id
        new_state = state.state
        transaction.on_commit(lambda: publish_change("verification", client_id, state=new_state))
        if new_state in (ClientVerificationState.STATE_LOCKED, ClientVerificationState.STATE_PENDING_MANUAL):
            transaction.on_commit(lambda: _alert_admins(client, new_state))

    logger.info(
        "Verification for client %s: %s (confidence=%s, attempts=%s)",
        client.id, state.state, state.last_confidence_score, state.attempts_count,
    )
    return VerificationResult(
        state=state.state,
        verified=state.state == ClientVerificationState.STATE_VERIFIED,
        attempts_remaining=state.attempts_remaining,
        confidence=state.last_confidence_score,
        message=message,
    )


def _alert_admins(client, new_state: str) -> None:
    reason = "locked after repeated failures" if new_state == ClientVerificationState.STATE_LOCKED else "needs manual review"
    email_admins(
        f"Identity verification {reason}",
        f"Client {client.username} (id {client.id}) {reason}. Review it in the admin verification queue.",
    )


@transaction.atomic
def review_verification(admin_user, client, action: str, notes: str = "") -> ClientVerificationState:
    """
    Admin decision on a locked or pending-manual verification.

    Raises:
        ValidationError: unknown action
        ConflictError: client has no verification awaiting review
    """
    if action not in REVIEW_ACTIONS:
        raise ValidationError(f"Action must be one of: {', '.join(REVIEW_ACTIONS)}")

    state = ClientVerificationState.objects.select_for_update().filter(client=client).first()
    reviewable = (ClientVerificationState.STATE_LOCKED, ClientVerificationState.STATE_PENDING_MANUAL)
    if state is None or state.state not in reviewable:
        raise ConflictError("This verification is not awaiting review")

    previous = state.state
    now = timezone.now()

    if action == "approve":
        state.state = ClientVerificationState.STATE_VERIFIED
        state.verified_at = now
        state.attempts_count = 0
        attempt_status = "approved"
        message = "Your identity verification has been approved."
    elif action == "reject":
        state.state = ClientVerificationState.STATE_LOCKED
        attempt_status = "rejected"
        message = "Your identity verification was rejected. Please contact support."
    else:
        state.state = ClientVerificationState.STATE_UNVERIFIED
        state.attempts_count = 0
        attempt_status = "unlocked"
        message = "Your verification has been unlocked. You can try again."

    state.save()
    VerificationAttempt.objects.create(
        client=client,
        status=attempt_status,
        reviewer=admin_user,
        request_metadata={"previous_state": previous, "action": action},
        failure_reason=notes if action == "reject" else "",
        response_metadata={"notes": notes} if notes else {},
    )
    logger.info("Admin %s %s verification for client %s (%s -> %s)", admin_user, action, client.id, previous, state.state)

    client_id = client.id
    new_state = state.state
    transaction.on_commit(lambda: publish_change("verification", client_id, state=new_state))
    transaction.on_commit(lambda: notify("verification_reviewed", client_id, message))
    return state
