from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Booking(models.Model):
    """A client's hire of one driver for a route and duration."""

    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_ONGOING = 'ongoing'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_ONGOING, 'Ongoing'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    ACTIVE_STATUSES = (STATUS_PENDING, STATUS_ACCEPTED, STATUS_ONGOING)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

    PAYMENT_PENDING = 'pending'
    PAYMENT_AUTHORIZED = 'authorized'
    PAYMENT_PAID = 'paid'
    PAYMENT_FAILED = 'failed'
    PAYMENT_REFUNDED = 'refunded'

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, 'Pending'),
        (PAYMENT_AUTHORIZED, 'Authorized'),
        (PAYMENT_PAID, 'Paid'),
        (PAYMENT_FAILED, 'Failed'),
        (PAYMENT_REFUNDED, 'Refunded'),
    ]

    # Parties
    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='bookings',
    )
    driver = models.ForeignKey(
        'drivers.DriverProfile',
        on_delete=models.PROTECT,
        related_name='bookings',
    )

    # Route
    start_location = models.TextField()
    destination = models.TextField()
    start_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    start_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    destination_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    destination_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    distance_km = models.DecimalField(max_digits=10, decimal_places=3, default=Decimal('0'))
    duration_hr = models.DecimalField(max_digits=6, decimal_places=2)
    scheduled_time = models.DateTimeField(null=True, blank=True)

    # Pricing (frozen at creation)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2)
    total_cost = models.DecimalField(max_digits=12, decimal_places=2)

    # Status
    booking_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING)
    payment_hold_ref = models.CharField(max_length=100, blank=True)

    # Dual confirmation
    driver_confirmed = models.BooleanField(default=False)
    driver_confirmed_at = models.DateTimeField(null=True, blank=True)
    client_confirmed = models.BooleanField(default=False)
    client_confirmed_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    cancellation_reason = models.TextField(blank=True)

    class Meta:
        db_table = 'bookings'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['booking_status', 'driver'], name='booking_status_driver_idx'),
            models.Index(fields=['client', 'booking_status'], name='booking_client_status_idx'),
        ]

    def __str__(self):
        return f"Booking #{self.id} - {self.client} - {self.booking_status}"

    @property
    def is_terminal(self) -> bool:
        return self.booking_status in self.TERMINAL_STATUSES


class CompletionDecline(models.Model):
    """A client's refusal of a driver's completion request."""

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='completion_declines')
    client = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE)
    reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'booking_completion_declines'
        ordering = ['created_at']

    def __str__(self):
        return f"Decline on booking {self.booking_id}"


class AdminBookingAction(models.Model):
    """Audit row for every administrative override of a booking."""

    ACTION_FORCE_COMPLETE = 'force_complete'
    ACTION_FORCE_CANCEL = 'force_cancel'

    ACTION_CHOICES = [
        (ACTION_FORCE_COMPLETE, 'Force complete'),
        (ACTION_FORCE_CANCEL, 'Force cancel'),
    ]

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name='admin_actions')
    admin = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='booking_actions',
    )
    action_type = models.CharField(max_length=20, choices=ACTION_CHOICES)
    previous_status = models.CharField(max_length=20)
    new_status = models.CharField(max_length=20)
    reason = models.TextField()
    dispute = models.ForeignKey(
        'disputes.Dispute',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='admin_actions',
    )
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'admin_booking_actions'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action_type} on booking {self.booking_id} by {self.admin}"


class Rating(models.Model):
    """A client's 1-5 rating of the driver for one completed booking."""

    booking = models.OneToOneField(Booking, on_delete=models.CASCADE, related_name='rating')
    client = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='ratings_given')
    driver = models.ForeignKey('drivers.DriverProfile', on_delete=models.CASCADE, related_name='ratings')
    score = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    review = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'booking_ratings'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.score}/5 for booking {self.booking_id}"
