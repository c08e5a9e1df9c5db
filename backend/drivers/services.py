"""
Driver presence and location.

Online requires a non-null location stamped within
PRESENCE_LOCATION_MAX_AGE_SECONDS. A location that later goes stale does not
flip the driver offline; it only makes them ineligible for new bookings
until the next update.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import List, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from common.exceptions import ValidationError
from common.utils.geo import calculate_distance_km, validate_coordinates
from drivers.models import DriverProfile
from realtime.notifications import notify, notify_driver_presence

logger = logging.getLogger(__name__)


def _as_decimal(value: float) -> Decimal:
    return Decimal(str(round(value, 6)))


# LOCATION UPDATE
def update_location(profile: DriverProfile, latitude, longitude) -> DriverProfile:
    """
    Persist the driver's location and stamp its freshness.
    Used by the HTTP endpoint, the WebSocket consumer and toggle_online.

    Raises:
        ValidationError: coordinates missing or out of range
    """
    lat, lng = validate_coordinates(latitude, longitude, "driver location")

    profile.current_latitude = _as_decimal(lat)
    profile.current_longitude = _as_decimal(lng)
    profile.last_location_update = timezone.now()
    profile.save(update_fields=["current_latitude", "current_longitude", "last_location_update"])

    transaction.on_commit(lambda: notify_driver_presence(profile))
    return profile


# ONLINE / OFFLINE
def toggle_online(profile: DriverProfile, online: bool, latitude=None, longitude=None) -> DriverProfile:
    """
    Switch the driver online or offline. Idempotent in both directions.

    Coordinates passed in the same call are persisted before the online
    check so a client can go online in one request.

    Raises:
        ValidationError: going online without a fresh location
    """
    if latitude is not None or longitude is not None:
        update_location(profile, latitude, longitude)

    target = DriverProfile.STATUS_ONLINE if online else DriverProfile.STATUS_OFFLINE

    if online and not profile.is_location_fresh():
        if not profile.has_location:
            raise ValidationError("Location is required to go online")
        raise ValidationError("Location is stale; send a fresh location to go online")

    if profile.online_status == target:
        return profile

    profile.online_status = target
    profile.save(update_fields=["online_status"])
    logger.info("Driver %s is now %s", profile.user_id, target)

    transaction.on_commit(lambda: notify_driver_presence(profile))
    return profile


# ELIGIBILITY
def is_eligible(profile: DriverProfile, now=None) -> bool:
    """A driver can receive new bookings only when online, verified and freshly located."""
    return profile.is_online and profile.verified and profile.is_location_fresh(now)


def ineligibility_reason(profile: DriverProfile, now=None):
    """Human readable reason a driver cannot be booked, or None."""
    if not profile.verified:
        return "Driver is not verified"
    if not profile.is_online:
        return "Driver is offline"
    if not profile.is_location_fresh(now):
        return "Driver location is stale"
    return None


# DISCOVERY
def find_nearby_drivers(latitude, longitude, radius_km=None, limit=None) -> List[Tuple[DriverProfile, float]]:
    """
    Bookable drivers around a point, closest first.

    Args:
        latitude, longitude: search centre (usually the client's pickup)
        radius_km: search radius, DRIVER_SEARCH_RADIUS_KM by default
        limit: max drivers returned, DRIVER_SEARCH_LIMIT by default

    Returns:
        List of (profile, distance_km) for eligible drivers inside the radius

    Raises:
        ValidationError: coordinates missing or out of range, or radius not positive
    """
    lat, lng = validate_coordinates(latitude, longitude, "search point")
    radius_km = float(settings.DRIVER_SEARCH_RADIUS_KM if radius_km is None else radius_km)
    if radius_km <= 0:
        raise ValidationError("Search radius must be positive")
    limit = limit or settings.DRIVER_SEARCH_LIMIT

    now = timezone.now()
    cutoff = now - timedelta(seconds=settings.PRESENCE_LOCATION_MAX_AGE_SECONDS)
    online_drivers = DriverProfile.objects.select_related("user").filter(
        online_status=DriverProfile.STATUS_ONLINE,
        verified=True,
        current_latitude__isnull=False,
        current_longitude__isnull=False,
        last_location_update__gte=cutoff,
    )

    candidates = []
    for profile in online_drivers:
        if not is_eligible(profile, now):
            continue
        distance = calculate_distance_km(lat, lng, profile.current_latitude, profile.current_longitude)
        if distance <= radius_km:
            candidates.append((profile, distance))

    candidates.sort(key=lambda item: item[1])
    return candidates[:limit]


# ADMIN VERIFICATION
def set_driver_verified(admin_user, profile: DriverProfile, verified: bool) -> DriverProfile:
    """
    Approve or revoke a driver. A revoked driver keeps their presence but
    stops being eligible for new bookings.
    """
    if profile.verified == verified:
        return profile

    profile.verified = verified
    profile.save(update_fields=["verified"])
    logger.info("Admin %s set driver %s verified=%s", admin_user, profile.user_id, verified)

    message = (
        "Your driver account has been verified. You can now receive bookings."
        if verified else
        "Your driver verification was revoked. Contact support for details."
    )
    user_id = profile.user_id
    transaction.on_commit(lambda: notify("driver_verification", user_id, message))
    transaction.on_commit(lambda: notify_driver_presence(profile))
    return profile
