from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.conf import settings


class CommissionConfig(models.Model):
    """
    Versioned platform commission. The highest version is in effect;
    settlements snapshot the percentage and version they were computed with.
    """

    version = models.PositiveIntegerField(unique=True)
    percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'commission_configs'
        ordering = ['-version']

    def __str__(self):
        return f"v{self.version}: {self.percentage}%"


class Settlement(models.Model):
    """Split of a completed booking's fare between the platform and the driver."""

    booking = models.OneToOneField('bookings.Booking', on_delete=models.PROTECT, related_name='settlement')
    total_fare = models.DecimalField(max_digits=12, decimal_places=2)
    commission_percentage = models.DecimalField(max_digits=5, decimal_places=2)
    commission_version = models.PositiveIntegerField(default=0)
    platform_share = models.DecimalField(max_digits=12, decimal_places=2)
    driver_share = models.DecimalField(max_digits=12, decimal_places=2)

    settled = models.BooleanField(default=False)
    payout_reference = models.CharField(max_length=100, blank=True)
    payout_attempts = models.PositiveIntegerField(default=0)
    last_payout_error = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    settled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'settlements'
        ordering = ['-created_at']

    def __str__(self):
        return f"Settlement for booking {self.booking_id} ({'settled' if self.settled else 'unsettled'})"


class PaymentJob(models.Model):
    """Outbox row for a payout or refund that must eventually reach the processor."""

    TYPE_PAYOUT = 'payout'
    TYPE_REFUND = 'refund'

    STATUS_PENDING = 'pending'
    STATUS_PROCESSING = 'processing'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
    ]

    booking = models.ForeignKey('bookings.Booking', on_delete=models.CASCADE, related_name='payment_jobs')
    job_type = models.CharField(
        max_length=10,
        choices=[(TYPE_PAYOUT, 'Payout'), (TYPE_REFUND, 'Refund')],
    )
    idempotency_key = models.CharField(max_length=100, unique=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    attempts = models.PositiveIntegerField(default=0)
    max_attempts = models.PositiveIntegerField(default=5)
    reference = models.CharField(max_length=100, blank=True)
    error_message = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'payment_jobs'
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['status', 'job_type'], name='payment_job_status_type_idx'),
        ]

    def __str__(self):
        return f"{self.job_type} job for booking {self.booking_id} ({self.status})"
