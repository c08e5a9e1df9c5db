"""Common utility functions."""

from .geo import calculate_distance, calculate_distance_km, validate_coordinates

__all__ = [
    "calculate_distance",
    "calculate_distance_km",
    "validate_coordinates",
]
