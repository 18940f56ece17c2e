"""
Address to coordinates resolution with a regional fallback.
"""

import random
from typing import Dict, Optional

import httpx

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryError, retry_on_exception
from .models import Address, Coordinates

# Capital of each federative unit.
STATE_CAPITALS: Dict[str, Coordinates] = {
    "AC": Coordinates(latitude=-9.0238, longitude=-70.8120),
    "AL": Coordinates(latitude=-9.5713, longitude=-36.7819),
    "AP": Coordinates(latitude=0.0389, longitude=-51.0964),
    "AM": Coordinates(latitude=-3.1190, longitude=-60.0217),
    "BA": Coordinates(latitude=-12.9704, longitude=-38.5124),
    "CE": Coordinates(latitude=-3.7304, longitude=-38.5267),
    "DF": Coordinates(latitude=-15.8267, longitude=-47.9218),
    "ES": Coordinates(latitude=-20.3155, longitude=-40.3128),
    "GO": Coordinates(latitude=-16.6869, longitude=-49.2648),
    "MA": Coordinates(latitude=-2.5387, longitude=-44.2825),
    "MT": Coordinates(latitude=-15.6014, longitude=-56.0979),
    "MS": Coordinates(latitude=-20.4697, longitude=-54.6201),
    "MG": Coordinates(latitude=-19.8157, longitude=-43.9542),
    "PA": Coordinates(latitude=-1.4554, longitude=-48.4898),
    "PB": Coordinates(latitude=-7.1195, longitude=-34.8450),
    "PR": Coordinates(latitude=-25.4284, longitude=-49.2733),
    "PE": Coordinates(latitude=-8.0476, longitude=-34.8770),
    "PI": Coordinates(latitude=-5.0892, longitude=-42.8019),
    "RJ": Coordinates(latitude=-22.9068, longitude=-43.1729),
    "RN": Coordinates(latitude=-5.7945, longitude=-35.2110),
    "RS": Coordinates(latitude=-30.0346, longitude=-51.2177),
    "RO": Coordinates(latitude=-8.7619, longitude=-63.9039),
    "RR": Coordinates(latitude=2.8235, longitude=-60.6758),
    "SC": Coordinates(latitude=-27.5954, longitude=-48.5480),
    "SP": Coordinates(latitude=-23.5505, longitude=-46.6333),
    "SE": Coordinates(latitude=-10.9472, longitude=-37.0731),
    "TO": Coordinates(latitude=-10.1753, longitude=-48.2982),
}

BRAZIL_CENTROID = Coordinates(latitude=-14.2350, longitude=-51.9253)
JITTER_DEGREES = 0.05


class GeocoderError(Exception):
    """Primary geocoder returned no usable result."""


class GoogleMapsGeocoder:
    """Client for the Google Maps Geocoding API."""

    def __init__(self, api_key: str,
                 base_url: str = "https://maps.googleapis.com/maps/api/geocode",
                 timeout: float = 8.0,
                 retry_config: Optional[RetryConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger("geocoding.google_maps")
        retry_config = retry_config or RetryConfig.from_retries(3, 1.0)
        self._fetch = retry_on_exception(
            (httpx.TransportError, httpx.HTTPStatusError), config=retry_config
        )(self._fetch_once)

    @staticmethod
    def build_query(address: Address) -> str:
        parts = [part for part in (address.street, address.district) if part]
        parts.extend([address.city, address.state, "Brazil"])
        return ", ".join(parts)

    async def _fetch_once(self, query: str) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(
                f"{self.base_url}/json",
                params={
                    "address": query,
                    "key": self.api_key,
                    "region": "br",
                    "language": "pt-BR",
                }
            )
        if response.status_code >= 500:
            response.raise_for_status()
        if response.status_code != 200:
            raise GeocoderError(f"Google Maps returned status {response.status_code}")
        return response.json()

    async def geocode(self, address: Address) -> Coordinates:
        query = self.build_query(address)
        self.logger.info("Google Maps geocoding query", query=query)

        try:
            data = await self._fetch(query)
        except RetryError as e:
            raise GeocoderError(f"Google Maps unreachable: {e.last_exception}") from e

        status = data.get("status")
        results = data.get("results") or []
        if status != "OK" or not results:
            raise GeocoderError(f"Google Maps geocoding failed: {status}")

        location = results[0]["geometry"]["location"]
        return Coordinates(
            latitude=round(float(location["lat"]), 6),
            longitude=round(float(location["lng"]), 6),
        )


class CoordinateResolver:
    """Resolves an address to coordinates and never fails.

    Tries the primary geocoder when one is configured, then falls back to the
    state capital with a small random offset, then to the national centroid.
    Results carry no indication of which source produced them.
    """

    def __init__(self, primary: Optional[GoogleMapsGeocoder] = None,
                 rng: Optional[random.Random] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.primary = primary
        self.rng = rng or random.Random()
        self.metrics = metrics
        self.logger = get_logger("geocoding.coordinate_resolver")

    async def resolve(self, address: Address) -> Coordinates:
        if self.primary is not None:
            try:
                coordinates = await self.primary.geocode(address)
                self._record_source("primary")
                return coordinates
            except Exception as e:
                self.logger.warning("Primary geocoder failed, using state fallback",
                                    state=address.state, error=str(e))

        return self.estimate(address)

    def estimate(self, address: Address) -> Coordinates:
        """State capital jittered by up to ``JITTER_DEGREES`` on each axis."""
        capital = STATE_CAPITALS.get(address.state.upper()) if address.state else None
        if capital is None:
            self.logger.warning("Unknown state, using country centroid", state=address.state)
            self._record_source("centroid")
            return BRAZIL_CENTROID.model_copy()

        self._record_source("state_capital")
        return Coordinates(
            latitude=round(capital.latitude + self.rng.uniform(-JITTER_DEGREES, JITTER_DEGREES), 6),
            longitude=round(capital.longitude + self.rng.uniform(-JITTER_DEGREES, JITTER_DEGREES), 6),
        )

    def _record_source(self, source: str):
        if self.metrics:
            self.metrics.increment_counter("coordinate_resolutions_total", source=source)
