from django.contrib import admin
from .models import CommissionConfig, PaymentJob, Settlement


@admin.register(Settlement)
class SettlementAdmin(admin.ModelAdmin):
    list_display = ("booking", "total_fare", "commission_percentage", "driver_share", "platform_share", "settled", "payout_attempts")
    list_filter = ("settled",)
    search_fields = ("booking__id", "payout_reference")
    readonly_fields = ("total_fare", "commission_percentage", "commission_version", "platform_share", "driver_share", "created_at")


@admin.register(CommissionConfig)
class CommissionConfigAdmin(admin.ModelAdmin):
    list_display = ("version", "percentage", "created_by", "created_at")
    readonly_fields = ("created_at",)


@admin.register(PaymentJob)
class PaymentJobAdmin(admin.ModelAdmin):
    list_display = ("booking", "job_type", "status", "attempts", "last_attempt_at", "processed_at")
    list_filter = ("job_type", "status")
    search_fields = ("booking__id", "idempotency_key", "reference")
