"""
Geocoding data models.
"""

from typing import Optional

from pydantic import BaseModel, Field


class Coordinates(BaseModel):
    """Latitude/longitude pair in decimal degrees.

    Range checks live in ``distance.calculator.validate_coordinates`` so that
    out-of-range input maps to ``INVALID_COORDINATES``.
    """
    latitude: float
    longitude: float


class Address(BaseModel):
    """Structured address derived from a postal code."""
    postal_code: str = Field(..., description="CEP as returned by the provider, e.g. 01310-100")
    street: str = ""
    complement: Optional[str] = None
    district: str = ""
    city: str
    state: str = Field(..., description="Two-letter federative unit code")
    ibge: Optional[str] = None
    gia: Optional[str] = None
    ddd: Optional[str] = None
    siafi: Optional[str] = None


class GeocodingResult(BaseModel):
    """Unit cached per postal code and returned to callers."""
    coordinates: Coordinates
    address: Address
