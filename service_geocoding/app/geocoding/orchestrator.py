"""
Cached postal code resolution.
"""

from typing import Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..cache.cache_aside import CacheAside
from .address_resolver import AddressResolver
from .coordinate_resolver import CoordinateResolver
from .models import GeocodingResult
from .postal_code import validate_cep


class GeocodingOrchestrator:
    """CEP -> {coordinates, address}, cached under ``geocoding:<cep>``.

    Nothing is cached when the address lookup fails; its errors propagate
    unchanged and are not retried here.
    """

    CACHE_PREFIX = "geocoding"

    def __init__(self, cache: CacheAside, address_resolver: AddressResolver,
                 coordinate_resolver: CoordinateResolver,
                 metrics: Optional[MetricsCollector] = None):
        self.cache = cache
        self.address_resolver = address_resolver
        self.coordinate_resolver = coordinate_resolver
        self.metrics = metrics
        self.logger = get_logger("geocoding.orchestrator")

    def cache_key(self, cep: str) -> str:
        return self.cache.generate_key(self.CACHE_PREFIX, cep)

    async def resolve_postal_code(self, raw: str) -> GeocodingResult:
        cep = validate_cep(raw)
        cache_key = self.cache_key(cep)

        cached = await self.cache.get(cache_key, GeocodingResult)
        if cached is not None:
            self.logger.info("Cache hit for CEP", cep=cep)
            self._record_cache("cache_hits_total")
            return cached

        self._record_cache("cache_misses_total")

        try:
            address = await self.address_resolver.lookup(cep)
        except Exception as e:
            self.logger.error("Failed to geocode CEP", cep=cep, error=str(e))
            raise

        coordinates = await self.coordinate_resolver.resolve(address)
        result = GeocodingResult(coordinates=coordinates, address=address)

        await self.cache.set(cache_key, result)

        self.logger.info("Successfully geocoded CEP", cep=cep)
        return result

    def _record_cache(self, metric_name: str):
        if self.metrics:
            self.metrics.increment_counter(metric_name, cache_type="geocoding")
