"""
Postal code resolution pipeline.
"""

from .address_resolver import AddressResolver
from .coordinate_resolver import CoordinateResolver, GoogleMapsGeocoder
from .models import Address, Coordinates, GeocodingResult
from .orchestrator import GeocodingOrchestrator

__all__ = [
    "Address",
    "AddressResolver",
    "Coordinates",
    "CoordinateResolver",
    "GeocodingOrchestrator",
    "GeocodingResult",
    "GoogleMapsGeocoder",
]
