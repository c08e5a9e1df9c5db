from django.contrib import admin
from drivers.models import DriverProfile


@admin.register(DriverProfile)
class DriverProfileAdmin(admin.ModelAdmin):
    """Admin panel for managing Driver Profiles"""

    list_display = [
        "user",
        "verified",
        "online_status",
        "hourly_rate",
        "total_trips",
        "last_location_update",
    ]

    list_filter = [
        "online_status",
        "verified",
    ]

    search_fields = [
        "user__username",
        "user__full_name",
    ]

    readonly_fields = [
        "current_latitude",
        "current_longitude",
        "last_location_update",
        "total_trips",
    ]

    ordering = ("user__username",)
