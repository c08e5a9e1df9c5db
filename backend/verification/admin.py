from django.contrib import admin
from .models import ClientVerificationState, VerificationAttempt


@admin.register(ClientVerificationState)
class ClientVerificationStateAdmin(admin.ModelAdmin):
    list_display = ("client", "state", "attempts_count", "last_confidence_score", "last_attempt_at", "verified_at")
    list_filter = ("state",)
    search_fields = ("client__username", "reference_id")


@admin.register(VerificationAttempt)
class VerificationAttemptAdmin(admin.ModelAdmin):
    list_display = ("client", "status", "confidence_score", "reviewer", "created_at")
    list_filter = ("status",)
    search_fields = ("client__username",)
    readonly_fields = ("id_number_hash", "request_metadata", "response_metadata", "created_at")
