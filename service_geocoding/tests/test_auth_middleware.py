"""
Unit tests for ApiKeyAuthMiddleware.
"""

import pytest
from unittest.mock import MagicMock
from fastapi import Request, Response

from service_geocoding.app.auth import ApiKeyAuthMiddleware, KeyAuthority, QuotaLedger
from service_geocoding.app.auth.models import ApiKeyPlan, ApiPermission
from shared.errors import ForbiddenError, QuotaExceededError, UnauthorizedError


class TestApiKeyAuthMiddleware:
    """Test cases for ApiKeyAuthMiddleware."""

    @pytest.fixture
    def key_authority(self, cache, date_clock):
        return KeyAuthority(cache, clock=date_clock)

    @pytest.fixture
    def quota_ledger(self, cache, date_clock):
        return QuotaLedger(cache, clock=date_clock)

    @pytest.fixture
    def auth_middleware(self, key_authority, quota_ledger):
        """Create ApiKeyAuthMiddleware instance."""
        return ApiKeyAuthMiddleware(key_authority, quota_ledger)

    @pytest.fixture
    def mock_request(self):
        """Create mock request."""
        request = MagicMock(spec=Request)
        request.headers = {}
        request.query_params = {}
        return request

    @pytest.fixture
    async def free_key(self, key_authority):
        return await key_authority.create("Free Key", ApiKeyPlan.FREE)

    @pytest.mark.asyncio
    async def test_missing_key(self, auth_middleware, mock_request):
        """Test requests without a key are rejected."""
        with pytest.raises(UnauthorizedError) as exc_info:
            await auth_middleware.authenticate_request(mock_request)

        assert exc_info.value.code == "UNAUTHORIZED"
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_key(self, auth_middleware, mock_request):
        """Test unknown keys are rejected."""
        mock_request.headers = {"X-API-Key": "eon_unknown_" + "f" * 64}

        with pytest.raises(UnauthorizedError) as exc_info:
            await auth_middleware.authenticate_request(mock_request)

        assert exc_info.value.code == "INVALID_API_KEY"

    @pytest.mark.asyncio
    async def test_header_key(self, auth_middleware, mock_request, free_key):
        """Test the X-API-Key header is accepted."""
        mock_request.headers = {"X-API-Key": free_key.key}

        api_key = await auth_middleware.authenticate_request(mock_request)

        assert api_key.id == free_key.id

    @pytest.mark.asyncio
    async def test_bearer_key(self, auth_middleware, mock_request, free_key):
        """Test a Bearer token is accepted."""
        mock_request.headers = {"Authorization": f"Bearer {free_key.key}"}

        api_key = await auth_middleware.authenticate_request(mock_request)

        assert api_key.id == free_key.id

    @pytest.mark.asyncio
    async def test_query_param_key(self, auth_middleware, mock_request, free_key):
        """Test the api_key query parameter is accepted."""
        mock_request.query_params = {"api_key": free_key.key}

        api_key = await auth_middleware.authenticate_request(mock_request)

        assert api_key.id == free_key.id

    @pytest.mark.asyncio
    async def test_forbidden_is_not_metered(self, auth_middleware, mock_request, free_key,
                                            quota_ledger, date_clock, cache):
        """Test a permission failure happens before usage is counted."""
        mock_request.headers = {"X-API-Key": free_key.key}

        with pytest.raises(ForbiddenError) as exc_info:
            await auth_middleware.process_request(mock_request, Response(), ApiPermission.DISTANCE_READ)

        assert exc_info.value.details["required_permission"] == "distance:read"
        assert await cache.exists(quota_ledger.usage_key(free_key.id, date_clock.now)) is False

    @pytest.mark.asyncio
    async def test_process_request_sets_headers(self, auth_middleware, mock_request, free_key, date_clock):
        """Test a metered request carries rate-limit headers."""
        mock_request.headers = {"X-API-Key": free_key.key}
        response = Response()

        api_key = await auth_middleware.process_request(mock_request, response, ApiPermission.GEOCODING_READ)

        assert api_key.usage.requests_today == 1
        assert response.headers["X-RateLimit-Limit"] == "1000"
        assert response.headers["X-RateLimit-Remaining"] == "999"
        assert response.headers["X-API-Plan"] == "free"
        assert int(response.headers["X-RateLimit-Reset"]) == int(date_clock.now.timestamp()) + 86400

    @pytest.mark.asyncio
    async def test_quota_exceeded(self, auth_middleware, mock_request, free_key, key_authority, cache):
        """Test a key over its daily limit is rejected with 429 details."""
        stored = await key_authority.get(free_key.key)
        stored.rate_limit.requests_per_day = 1
        await cache.set(f"apikey:{free_key.key}", stored, 0)
        mock_request.headers = {"X-API-Key": free_key.key}

        await auth_middleware.process_request(mock_request, Response(), ApiPermission.GEOCODING_READ)

        with pytest.raises(QuotaExceededError) as exc_info:
            await auth_middleware.process_request(mock_request, Response(), ApiPermission.GEOCODING_READ)

        assert exc_info.value.status_code == 429
        assert exc_info.value.details["limit"] == 1
        assert exc_info.value.details["plan"] == "free"
        assert exc_info.value.details["reset_time"].startswith("2024-05-11T00:00:00")
