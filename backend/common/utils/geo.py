"""
Geographic utility functions.

This module provides core geospatial calculations used throughout the application.
"""

from math import radians, cos, sin, asin, sqrt

from common.exceptions import ValidationError


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in meters using Haversine formula.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in meters
    """
    lat1, lon1, lat2, lon2 = map(radians, [float(lat1), float(lon1), float(lat2), float(lon2)])
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(a))
    r = 6371000  # Earth's radius in meters
    return c * r


def calculate_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance in kilometres, rounded to 3 decimals."""
    return round(calculate_distance(lat1, lon1, lat2, lon2) / 1000.0, 3)


def validate_coordinates(latitude, longitude, label: str = "location"):
    """
    Check a lat/lng pair is present and in range.

    Raises:
        ValidationError: if either value is missing, non-numeric or out of range
    """
    if latitude is None or longitude is None:
        raise ValidationError(f"Missing coordinates for {label}")
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        raise ValidationError(f"Coordinates for {label} must be numbers")

    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise ValidationError(f"Coordinates for {label} are out of range")
    return lat, lng
