from datetime import timedelta
from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.conf import settings

User = settings.AUTH_USER_MODEL


class DriverProfile(models.Model):
    """Driver-specific details, presence and last known location"""
    STATUS_ONLINE = 'online'
    STATUS_OFFLINE = 'offline'
    STATUS_CHOICES = [
        (STATUS_ONLINE, 'Online'),
        (STATUS_OFFLINE, 'Offline'),
    ]

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='driver_profile')

    # Hiring details
    verified = models.BooleanField(default=False)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal('0.00'))
    total_trips = models.PositiveIntegerField(default=0)
    payout_account = models.CharField(max_length=100, blank=True)

    # Presence & location
    online_status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_OFFLINE)
    current_latitude = models.DecimalField(max_digits=10, decimal_places=6, null=True, blank=True)
    current_longitude = models.DecimalField(max_digits=10, decimal_places=6, null=True, blank=True)
    last_location_update = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'driver_profiles'
        indexes = [
            models.Index(fields=['online_status', 'verified'], name='driver_online_verified_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} ({self.online_status})"

    @property
    def is_online(self) -> bool:
        return self.online_status == self.STATUS_ONLINE

    @property
    def has_location(self) -> bool:
        return self.current_latitude is not None and self.current_longitude is not None

    def is_location_fresh(self, now=None) -> bool:
        """True when a location exists and was stamped within the freshness window."""
        if not self.has_location or self.last_location_update is None:
            return False
        now = now or timezone.now()
        max_age = timedelta(seconds=settings.PRESENCE_LOCATION_MAX_AGE_SECONDS)
        return now - self.last_location_update <= max_age
