"""
Unit tests for CoordinateResolver and GoogleMapsGeocoder.
"""

import random

import httpx
import pytest

from service_geocoding.app.geocoding import Address, CoordinateResolver, GoogleMapsGeocoder
from service_geocoding.app.geocoding.coordinate_resolver import (
    BRAZIL_CENTROID,
    STATE_CAPITALS,
)
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig


def google_response(status="OK", lat=-23.5613991, lng=-46.6565712):
    results = [{"geometry": {"location": {"lat": lat, "lng": lng}}}] if status == "OK" else []
    return httpx.Response(200, json={"status": status, "results": results})


class TestCoordinateResolver:
    """Test cases for CoordinateResolver."""

    @pytest.fixture
    def address(self):
        return Address(
            postal_code="01310-100",
            street="Avenida Paulista",
            district="Bela Vista",
            city="São Paulo",
            state="SP"
        )

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("geocoding")

    def make_geocoder(self, handler) -> GoogleMapsGeocoder:
        return GoogleMapsGeocoder(
            "test-key",
            retry_config=RetryConfig.from_retries(3, 0),
            transport=httpx.MockTransport(handler)
        )

    def test_every_state_has_a_capital(self):
        """Test the fallback table covers all 27 federative units."""
        assert len(STATE_CAPITALS) == 27
        for capital in STATE_CAPITALS.values():
            assert -35 < capital.latitude < 6
            assert -75 < capital.longitude < -34

    @pytest.mark.asyncio
    async def test_state_fallback_without_primary(self, address):
        """Test the state capital is used, jittered within 0.05 degrees."""
        resolver = CoordinateResolver(rng=random.Random(7))
        capital = STATE_CAPITALS["SP"]

        coordinates = await resolver.resolve(address)

        assert abs(coordinates.latitude - capital.latitude) <= 0.05 + 1e-6
        assert abs(coordinates.longitude - capital.longitude) <= 0.05 + 1e-6
        assert round(coordinates.latitude, 6) == coordinates.latitude
        assert round(coordinates.longitude, 6) == coordinates.longitude

    @pytest.mark.asyncio
    async def test_seeded_jitter_is_reproducible(self, address):
        """Test the same seed yields the same estimate."""
        first = await CoordinateResolver(rng=random.Random(42)).resolve(address)
        second = await CoordinateResolver(rng=random.Random(42)).resolve(address)

        assert first == second

    @pytest.mark.asyncio
    async def test_unknown_state_uses_centroid(self, address, metrics):
        """Test an unknown region falls back to the country centroid."""
        address.state = "XX"
        resolver = CoordinateResolver(metrics=metrics)

        coordinates = await resolver.resolve(address)

        assert coordinates == BRAZIL_CENTROID
        assert metrics.registry.get_sample_value(
            "coordinate_resolutions_total", {"source": "centroid"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_lowercase_state(self, address):
        """Test state lookup ignores case."""
        address.state = "rj"
        capital = STATE_CAPITALS["RJ"]

        coordinates = await CoordinateResolver().resolve(address)

        assert abs(coordinates.latitude - capital.latitude) <= 0.05 + 1e-6

    @pytest.mark.asyncio
    async def test_primary_success(self, address, metrics):
        """Test the primary geocoder's first result is used, rounded to 6 decimals."""
        requests = []

        def handler(request):
            requests.append(request)
            return google_response()

        resolver = CoordinateResolver(primary=self.make_geocoder(handler), metrics=metrics)

        coordinates = await resolver.resolve(address)

        assert coordinates.latitude == -23.561399
        assert coordinates.longitude == -46.656571
        params = requests[0].url.params
        assert params["address"] == "Avenida Paulista, Bela Vista, São Paulo, SP, Brazil"
        assert params["key"] == "test-key"
        assert params["region"] == "br"
        assert params["language"] == "pt-BR"
        assert metrics.registry.get_sample_value(
            "coordinate_resolutions_total", {"source": "primary"}
        ) == 1.0

    @pytest.mark.asyncio
    async def test_primary_zero_results_falls_back(self, address):
        """Test a non-OK status falls through to the state estimate."""
        resolver = CoordinateResolver(
            primary=self.make_geocoder(lambda request: google_response(status="ZERO_RESULTS")),
            rng=random.Random(1)
        )
        capital = STATE_CAPITALS["SP"]

        coordinates = await resolver.resolve(address)

        assert abs(coordinates.latitude - capital.latitude) <= 0.05 + 1e-6

    @pytest.mark.asyncio
    async def test_primary_unreachable_falls_back(self, address):
        """Test transport failures are retried, then fall through."""
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused")

        resolver = CoordinateResolver(primary=self.make_geocoder(handler))
        capital = STATE_CAPITALS["SP"]

        coordinates = await resolver.resolve(address)

        assert len(calls) == 4
        assert abs(coordinates.longitude - capital.longitude) <= 0.05 + 1e-6

    @pytest.mark.asyncio
    async def test_primary_client_error_is_not_retried(self, address):
        """Test a 4xx answer falls through after a single call."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403, json={"error_message": "denied"})

        resolver = CoordinateResolver(primary=self.make_geocoder(handler), rng=random.Random(3))
        capital = STATE_CAPITALS["SP"]

        coordinates = await resolver.resolve(address)

        assert len(calls) == 1
        assert abs(coordinates.latitude - capital.latitude) <= 0.05 + 1e-6
        assert abs(coordinates.longitude - capital.longitude) <= 0.05 + 1e-6

    @pytest.mark.asyncio
    async def test_primary_server_error_is_retried(self, address):
        """Test 5xx answers are retried before falling through."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503)

        resolver = CoordinateResolver(primary=self.make_geocoder(handler))

        await resolver.resolve(address)

        assert len(calls) == 4

    def test_query_skips_empty_parts(self):
        """Test addresses without street or district still build a query."""
        address = Address(postal_code="69900-000", city="Rio Branco", state="AC")

        assert GoogleMapsGeocoder.build_query(address) == "Rio Branco, AC, Brazil"
