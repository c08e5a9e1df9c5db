"""
Error taxonomy shared by every service module.

Services raise these; the DRF exception handler renders them as
``{"error": {"kind": ..., "message": ...}}``.
"""


class CoreError(Exception):
    """Base class for errors surfaced to callers."""
    kind = "error"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(CoreError):
    """Malformed input; rejected before any state mutation."""
    kind = "validation"
    status_code = 400
    default_message = "Invalid input"


class ConflictError(CoreError):
    """Action is not valid for the resource's current state."""
    kind = "conflict"
    status_code = 409
    default_message = "Action not allowed in the current state"


class ExternalServiceError(CoreError):
    """Payment or identity provider failure; safe to retry."""
    kind = "external_service"
    status_code = 502
    default_message = "An external service is unavailable. Please retry."
    retryable = True


class LockedError(CoreError):
    """Identity verification exhausted its automatic attempts."""
    kind = "locked"
    status_code = 423
    default_message = "Verification locked. Please contact support for manual review."
