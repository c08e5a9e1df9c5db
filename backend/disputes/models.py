from django.db import models
from django.conf import settings


class Dispute(models.Model):
    """A complaint raised by a booking participant and worked by admins."""

    STATUS_OPEN = 'open'
    STATUS_INVESTIGATING = 'investigating'
    STATUS_RESOLVED = 'resolved'
    STATUS_CLOSED = 'closed'

    STATUS_CHOICES = [
        (STATUS_OPEN, 'Open'),
        (STATUS_INVESTIGATING, 'Investigating'),
        (STATUS_RESOLVED, 'Resolved'),
        (STATUS_CLOSED, 'Closed'),
    ]

    UNRESOLVED_STATUSES = (STATUS_OPEN, STATUS_INVESTIGATING)

    TYPE_CHOICES = [
        ('payment', 'Payment'),
        ('service_quality', 'Service quality'),
        ('cancellation', 'Cancellation'),
        ('other', 'Other'),
    ]

    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('medium', 'Medium'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    booking = models.ForeignKey('bookings.Booking', on_delete=models.CASCADE, related_name='disputes')
    reported_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='reported_disputes',
    )
    reporter_role = models.CharField(max_length=10, choices=[('client', 'Client'), ('driver', 'Driver')])
    dispute_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    description = models.TextField()

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_OPEN)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='medium')

    resolution = models.TextField(blank=True)
    admin_notes = models.TextField(blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='resolved_disputes',
    )
    resolved_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'disputes'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['booking', 'status'], name='dispute_booking_status_idx'),
        ]

    def __str__(self):
        return f"Dispute #{self.id} on booking {self.booking_id} ({self.status})"

    @property
    def is_unresolved(self) -> bool:
        return self.status in self.UNRESOLVED_STATUSES
