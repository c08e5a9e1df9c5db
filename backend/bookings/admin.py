"""Django admin registrations for bookings"""

from django.contrib import admin
from .models import AdminBookingAction, Booking, CompletionDecline, Rating


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Booking admin (read-mostly; overrides go through the API so they are audited)"""
    list_display = ['id', 'client', 'driver', 'booking_status', 'payment_status', 'total_cost', 'created_at', 'completed_at']
    list_filter = ['booking_status', 'payment_status', 'created_at']
    search_fields = ['client__username', 'driver__user__username', 'start_location', 'destination']
    readonly_fields = ['created_at', 'updated_at', 'accepted_at', 'started_at', 'completed_at', 'cancelled_at',
                       'booking_status', 'payment_status', 'payment_hold_ref', 'total_cost', 'hourly_rate']
    date_hierarchy = 'created_at'


@admin.register(AdminBookingAction)
class AdminBookingActionAdmin(admin.ModelAdmin):
    list_display = ("booking", "action_type", "admin", "previous_status", "new_status", "created_at")
    list_filter = ("action_type",)
    search_fields = ("booking__id", "admin__username", "reason")


@admin.register(CompletionDecline)
class CompletionDeclineAdmin(admin.ModelAdmin):
    list_display = ("booking", "client", "created_at")
    search_fields = ("booking__id", "client__username")


@admin.register(Rating)
class RatingAdmin(admin.ModelAdmin):
    list_display = ("booking", "driver", "client", "score", "created_at")
    list_filter = ("score",)
    search_fields = ("booking__id", "driver__user__username", "client__username")
