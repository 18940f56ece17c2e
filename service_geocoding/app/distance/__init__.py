"""
Distance calculations.
"""

from .calculator import (
    DistanceResult,
    DistanceService,
    calculate_distance,
    kilometers_to_miles,
    validate_coordinates,
)

__all__ = [
    "DistanceResult",
    "DistanceService",
    "calculate_distance",
    "kilometers_to_miles",
    "validate_coordinates",
]
