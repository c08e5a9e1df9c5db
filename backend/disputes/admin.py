from django.contrib import admin
from .models import Dispute


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "reporter_role", "dispute_type", "status", "priority", "created_at")
    list_filter = ("status", "priority", "dispute_type")
    search_fields = ("booking__id", "reported_by__username", "description")
    readonly_fields = ("created_at", "updated_at", "resolved_at")
