"""
Authenticated actors.

Every request is resolved once into exactly one of ``ClientActor``,
``DriverActor`` or ``AdminActor``; services receive the variant they need
instead of inspecting ``user.role`` at each call site.
"""

from dataclasses import dataclass
from typing import Union

from rest_framework.exceptions import PermissionDenied


@dataclass(frozen=True)
class ClientActor:
    user: object
    role: str = "client"

    @property
    def id(self) -> int:
        return self.user.id


@dataclass(frozen=True)
class DriverActor:
    user: object
    profile: object
    role: str = "driver"

    @property
    def id(self) -> int:
        return self.user.id


@dataclass(frozen=True)
class AdminActor:
    user: object
    role: str = "admin"

    @property
    def id(self) -> int:
        return self.user.id


Actor = Union[ClientActor, DriverActor, AdminActor]


def resolve_actor(user) -> Actor:
    """Build the actor variant for an authenticated user."""
    if user is None or not user.is_authenticated:
        raise PermissionDenied("Authentication required")

    if user.role == "admin" or user.is_superuser:
        return AdminActor(user=user)

    if user.role == "driver":
        from drivers.models import DriverProfile
        try:
            profile = user.driver_profile
        except DriverProfile.DoesNotExist:
            raise PermissionDenied("Driver profile not found")
        return DriverActor(user=user, profile=profile)

    if user.role == "client":
        return ClientActor(user=user)

    raise PermissionDenied("Unknown role")


def request_actor(request) -> Actor:
    """Resolve (once per request) the actor behind a DRF request."""
    actor = getattr(request, "_actor", None)
    if actor is None:
        actor = resolve_actor(request.user)
        request._actor = actor
    return actor


def require_actor(request, *kinds) -> Actor:
    """Resolve the actor and insist it is one of ``kinds``."""
    actor = request_actor(request)
    if not isinstance(actor, kinds):
        raise PermissionDenied("You do not have permission to perform this action.")
    return actor
