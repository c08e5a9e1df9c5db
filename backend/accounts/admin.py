from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import User
from drivers.models import DriverProfile
from verification.models import ClientVerificationState


class DriverProfileInline(admin.StackedInline):
    model = DriverProfile
    can_delete = False
    extra = 0
    fields = ("verified", "hourly_rate", "payout_account", "online_status", "total_trips")
    readonly_fields = ("online_status", "total_trips")


class VerificationStateInline(admin.StackedInline):
    model = ClientVerificationState
    fk_name = "client"
    can_delete = False
    extra = 0
    fields = ("state", "attempts_count", "last_confidence_score", "last_attempt_at", "verified_at")
    readonly_fields = fields


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Users with their role-specific record inline"""

    list_display = ["username", "email", "full_name", "role", "phone_number", "is_active"]
    list_filter = ["role", "is_active", "is_staff", "date_joined"]
    search_fields = ["username", "email", "full_name", "phone_number"]
    ordering = ("username",)

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Role", {"fields": ("role", "full_name", "phone_number")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Role", {"fields": ("role", "full_name", "phone_number")}),
    )

    def get_inlines(self, request, obj):
        if obj is None:
            return []
        if obj.role == User.ROLE_DRIVER:
            return [DriverProfileInline]
        if obj.role == User.ROLE_CLIENT:
            return [VerificationStateInline]
        return []
