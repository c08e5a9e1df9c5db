from django.db import models
from django.conf import settings


class ClientVerificationState(models.Model):
    """Per-client identity verification progress. Created at first submission."""

    STATE_UNVERIFIED = 'unverified'
    STATE_PENDING_MANUAL = 'pending_manual'
    STATE_VERIFIED = 'verified'
    STATE_LOCKED = 'locked'

    STATE_CHOICES = [
        (STATE_UNVERIFIED, 'Unverified'),
        (STATE_PENDING_MANUAL, 'Pending manual review'),
        (STATE_VERIFIED, 'Verified'),
        (STATE_LOCKED, 'Locked'),
    ]

    client = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='verification_state',
    )
    state = models.CharField(max_length=20, choices=STATE_CHOICES, default=STATE_UNVERIFIED)
    attempts_count = models.PositiveSmallIntegerField(default=0)
    last_confidence_score = models.FloatField(null=True, blank=True)
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    verified_at = models.DateTimeField(null=True, blank=True)
    reference_id = models.CharField(max_length=100, blank=True)
    # Set while a submission is waiting on the provider; cleared with its outcome.
    submission_started_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'client_verification_states'

    def __str__(self):
        return f"{self.client} - {self.state} ({self.attempts_count} attempts)"

    @property
    def attempts_remaining(self) -> int:
        return max(0, settings.IDENTITY_MAX_ATTEMPTS - self.attempts_count)


class VerificationAttempt(models.Model):
    """Audit log row for every submission and admin review."""

    STATUS_CHOICES = [
        ('success', 'Success'),
        ('failed', 'Failed'),
        ('pending_manual', 'Pending manual review'),
        ('error', 'Provider error'),
        ('approved', 'Approved by admin'),
        ('rejected', 'Rejected by admin'),
        ('unlocked', 'Unlocked by admin'),
    ]

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='verification_attempts',
    )
    id_number_hash = models.CharField(max_length=64, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES)
    confidence_score = models.FloatField(null=True, blank=True)
    request_metadata = models.JSONField(default=dict, blank=True)
    response_metadata = models.JSONField(default=dict, blank=True)
    failure_reason = models.TextField(blank=True)
    reviewer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='verification_reviews',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'verification_attempts'
        ordering = ['-created_at']

    def __str__(self):
        return f"Verification {self.status} for {self.client}"
