from rest_framework.permissions import BasePermission


class IsPlatformAdmin(BasePermission):
    """Admins are role == 'admin' or Django superusers."""

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return user.role == "admin" or user.is_superuser
