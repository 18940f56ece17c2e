"""
Great-circle distances between coordinates and postal codes.
"""

import asyncio
import math

from pydantic import BaseModel

from shared.errors import InvalidInputError
from shared.logging import get_logger
from ..geocoding.models import Coordinates
from ..geocoding.orchestrator import GeocodingOrchestrator

EARTH_RADIUS_KM = 6371
KM_TO_MILES = 0.621371


class Distance(BaseModel):
    kilometers: float
    miles: float


class DistanceResult(BaseModel):
    """Distance plus the endpoints it was computed between."""
    distance: Distance
    origin: Coordinates
    destination: Coordinates


def validate_coordinates(coordinates: Coordinates) -> None:
    """Raise :class:`InvalidInputError` unless both axes are in range."""
    if not -90 <= coordinates.latitude <= 90 or not -180 <= coordinates.longitude <= 180:
        raise InvalidInputError(
            "Invalid coordinates",
            code="INVALID_COORDINATES",
            details={"latitude": coordinates.latitude, "longitude": coordinates.longitude}
        )


def calculate_distance(origin: Coordinates, destination: Coordinates) -> float:
    """Haversine distance in kilometers, rounded to 2 decimals."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(destination.latitude)
    d_lat = math.radians(destination.latitude - origin.latitude)
    d_lon = math.radians(destination.longitude - origin.longitude)

    a = (math.sin(d_lat / 2) ** 2
         + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return round(EARTH_RADIUS_KM * c, 2)


def kilometers_to_miles(kilometers: float) -> float:
    return round(kilometers * KM_TO_MILES, 2)


class DistanceService:
    """Distances between coordinate pairs or postal code pairs."""

    def __init__(self, orchestrator: GeocodingOrchestrator):
        self.orchestrator = orchestrator
        self.logger = get_logger("geocoding.distance")

    def between_coordinates(self, origin: Coordinates, destination: Coordinates) -> DistanceResult:
        validate_coordinates(origin)
        validate_coordinates(destination)

        kilometers = calculate_distance(origin, destination)
        return DistanceResult(
            distance=Distance(kilometers=kilometers, miles=kilometers_to_miles(kilometers)),
            origin=origin,
            destination=destination,
        )

    async def between_postal_codes(self, origin_cep: str, destination_cep: str) -> DistanceResult:
        """Resolve both CEPs concurrently, then measure between their coordinates."""
        origin, destination = await asyncio.gather(
            self.orchestrator.resolve_postal_code(origin_cep),
            self.orchestrator.resolve_postal_code(destination_cep),
        )

        result = self.between_coordinates(origin.coordinates, destination.coordinates)
        self.logger.info("Calculated distance between CEPs", origin=origin_cep,
                         destination=destination_cep, kilometers=result.distance.kilometers)
        return result
