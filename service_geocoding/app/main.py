"""
Geocoding service for the CEP Geocoding API.
"""

from typing import Dict, Optional

from fastapi import Depends
from pydantic import BaseModel, ConfigDict, Field

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import ForbiddenError, NotFoundError, success_response
from shared.retry import RetryConfig

from .auth import ApiKeyAuthMiddleware, KeyAuthority, QuotaLedger
from .auth.models import ApiKey, ApiPermission, CreateApiKeyRequest
from .cache import CacheAside
from .distance import DistanceService
from .geocoding import (
    AddressResolver,
    CoordinateResolver,
    Coordinates,
    GeocodingOrchestrator,
    GoogleMapsGeocoder,
)
from .store import KeyValueStore, create_store


class CoordinatesDistanceRequest(BaseModel):
    origin: Coordinates
    destination: Coordinates


class CepDistanceRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    origin_cep: str = Field(..., alias="originCep")
    destination_cep: str = Field(..., alias="destinationCep")


class GeocodingService(BaseService):
    """Geocoding service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None,
                 store: Optional[KeyValueStore] = None,
                 address_resolver: Optional[AddressResolver] = None,
                 coordinate_resolver: Optional[CoordinateResolver] = None):
        super().__init__("geocoding", 8000, config)

        retry_config = RetryConfig.from_retries(
            self.config.provider_max_retries,
            self.config.provider_retry_base_delay
        )

        # Initialize components
        self.store = store or create_store(self.config)
        self.cache = CacheAside(self.store, default_ttl=self.config.cache_ttl_seconds)
        self.key_authority = KeyAuthority(self.cache, metrics=self.metrics)
        self.quota_ledger = QuotaLedger(self.cache, metrics=self.metrics)
        self.auth = ApiKeyAuthMiddleware(self.key_authority, self.quota_ledger)

        self.address_resolver = address_resolver or AddressResolver(
            self.config.viacep_url,
            timeout=self.config.viacep_timeout,
            retry_config=retry_config,
            metrics=self.metrics
        )
        self.coordinate_resolver = coordinate_resolver or CoordinateResolver(
            primary=self._build_primary_geocoder(retry_config),
            metrics=self.metrics
        )
        self.orchestrator = GeocodingOrchestrator(
            self.cache,
            self.address_resolver,
            self.coordinate_resolver,
            metrics=self.metrics
        )
        self.distance_service = DistanceService(self.orchestrator)

        self._setup_geocoding_routes()

    def _build_primary_geocoder(self, retry_config: RetryConfig) -> Optional[GoogleMapsGeocoder]:
        if not self.config.google_maps_api_key:
            self.logger.info("No Google Maps API key configured, using regional estimates only")
            return None
        return GoogleMapsGeocoder(
            self.config.google_maps_api_key,
            base_url=self.config.google_maps_url,
            timeout=self.config.google_maps_timeout,
            retry_config=retry_config
        )

    def _setup_geocoding_routes(self):
        """Set up geocoding-specific routes."""

        require_geocoding = self.auth.require(ApiPermission.GEOCODING_READ)
        require_distance = self.auth.require(ApiPermission.DISTANCE_READ)
        require_admin_read = self.auth.require(ApiPermission.ADMIN_READ)
        require_admin_write = self.auth.require(ApiPermission.ADMIN_WRITE)

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return success_response({
                "service": "geocoding",
                "message": "CEP Geocoding API",
                "version": "1.0.0",
                "endpoints": {
                    "health": "/health",
                    "geocoding": "/api/v1/geocoding/cep/{cep}",
                    "distance": "/api/v1/distance/{ceps|coordinates}",
                    "auth": "/api/v1/auth/keys"
                }
            })

        @self.app.get("/api/v1/geocoding/cep/{cep}")
        async def geocode_cep(cep: str, api_key: ApiKey = Depends(require_geocoding)):
            """Resolve a CEP to its address and coordinates."""
            result = await self.orchestrator.resolve_postal_code(cep)
            return success_response(result.model_dump(mode="json"))

        @self.app.post("/api/v1/distance/coordinates")
        async def distance_between_coordinates(request: CoordinatesDistanceRequest,
                                               api_key: ApiKey = Depends(require_distance)):
            """Distance between two coordinate pairs."""
            result = self.distance_service.between_coordinates(request.origin, request.destination)
            return success_response(result.model_dump(mode="json"))

        @self.app.post("/api/v1/distance/ceps")
        async def distance_between_ceps(request: CepDistanceRequest,
                                        api_key: ApiKey = Depends(require_distance)):
            """Distance between two CEPs."""
            result = await self.distance_service.between_postal_codes(
                request.origin_cep, request.destination_cep
            )
            return success_response(result.model_dump(mode="json"))

        @self.app.post("/api/v1/auth/keys", status_code=201)
        async def create_api_key(request: CreateApiKeyRequest,
                                 api_key: ApiKey = Depends(require_admin_write)):
            """Issue a new API key."""
            issued = await self.key_authority.create(
                name=request.name,
                plan=request.plan,
                permissions=request.permissions,
                expires_in_days=request.expires_in_days,
                description=request.description
            )
            return success_response(issued.model_dump(mode="json"))

        @self.app.get("/api/v1/auth/keys")
        async def list_api_keys(api_key: ApiKey = Depends(require_admin_read)):
            """List API keys."""
            keys = await self.key_authority.list_keys()
            return success_response(keys.model_dump(mode="json"))

        @self.app.delete("/api/v1/auth/keys/{key}")
        async def revoke_api_key(key: str, api_key: ApiKey = Depends(require_admin_write)):
            """Revoke an API key by its secret."""
            if not await self.key_authority.revoke(key):
                raise NotFoundError("API key not found", code="API_KEY_NOT_FOUND")
            return success_response({"message": "API key revoked successfully"})

        @self.app.post("/api/v1/auth/master-key", status_code=201)
        async def create_master_key():
            """Issue an all-permissions key. Disabled in production."""
            if self.config.is_production:
                raise ForbiddenError("Master key creation is not allowed in production")

            issued = await self.key_authority.create_master_key()
            self.logger.warning("Master key created", api_key_id=issued.id)
            return success_response(issued.model_dump(mode="json"))

    async def on_startup(self):
        """Start geocoding service components."""
        await self.store.start()
        self.logger.info("Geocoding service started")

    async def on_shutdown(self):
        """Stop geocoding service components."""
        await self.store.stop()
        self.logger.info("Geocoding service stopped")

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check geocoding service dependencies."""
        dependencies = {}

        try:
            dependencies["redis"] = "ok" if await self.store.ping() else "error"
        except Exception as e:
            self.logger.error("Store health check failed", error=str(e))
            dependencies["redis"] = "error"

        dependencies["viacep"] = "ok" if await self.address_resolver.is_available() else "error"

        return dependencies


def create_app(config: Optional[ServiceConfig] = None, **components):
    """Create geocoding service application."""
    service = GeocodingService(config, **components)
    return service.app


if __name__ == "__main__":
    service = GeocodingService(get_config("geocoding", 8000))
    service.run()
