"""
API key authentication middleware for the geocoding service.
"""

from typing import Callable, Optional

from fastapi import Request, Response

from shared.logging import get_logger, set_api_key_context
from shared.errors import ForbiddenError, QuotaExceededError, UnauthorizedError
from .key_authority import KeyAuthority
from .models import ApiKey, ApiPermission
from .quota_ledger import QuotaLedger


class ApiKeyAuthMiddleware:
    """Authenticates, authorizes and meters requests carrying an API key."""

    def __init__(self, key_authority: KeyAuthority, quota_ledger: QuotaLedger):
        self.key_authority = key_authority
        self.quota_ledger = quota_ledger
        self.logger = get_logger("geocoding.auth_middleware")

    async def authenticate_request(self, request: Request) -> ApiKey:
        """Resolve the request's API key or raise :class:`UnauthorizedError`."""
        secret = self._extract_api_key(request)
        if not secret:
            raise UnauthorizedError(
                "API key is required",
                details={"hint": "Provide a valid API key in the X-API-Key header or as api_key query parameter"}
            )

        api_key = await self.key_authority.validate(secret)
        if api_key is None:
            raise UnauthorizedError(
                "Invalid API key",
                code="INVALID_API_KEY",
                details={"hint": "The provided API key is invalid or has been revoked"}
            )

        set_api_key_context(api_key.id)
        return api_key

    def authorize_request(self, api_key: ApiKey, permission: ApiPermission) -> bool:
        if not self.key_authority.has_permission(api_key, permission):
            self.logger.warning("Authorization failed", api_key_id=api_key.id,
                                permission=permission.value)
            raise ForbiddenError(
                "Insufficient permissions",
                details={"required_permission": permission.value}
            )
        return True

    async def meter_request(self, api_key: ApiKey, response: Response) -> None:
        """Enforce the daily quota, count the request and set rate-limit headers."""
        decision = await self.quota_ledger.check(api_key)
        limit = api_key.rate_limit.requests_per_day

        if not decision.allowed:
            raise QuotaExceededError(
                "Rate limit exceeded",
                details={
                    "limit": limit,
                    "plan": api_key.plan.value,
                    "reset_time": decision.reset_time.isoformat(),
                }
            )

        await self.quota_ledger.record(api_key)

        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(max(0, decision.remaining - 1))
        response.headers["X-RateLimit-Reset"] = str(int(decision.reset_time.timestamp()))
        response.headers["X-API-Plan"] = api_key.plan.value

    async def process_request(self, request: Request, response: Response,
                              permission: Optional[ApiPermission] = None) -> ApiKey:
        """Authenticate, authorize, then meter."""
        api_key = await self.authenticate_request(request)

        if permission is not None:
            self.authorize_request(api_key, permission)

        await self.meter_request(api_key, response)

        self.logger.info("Request authenticated", api_key_id=api_key.id, plan=api_key.plan.value)
        return api_key

    def require(self, permission: Optional[ApiPermission] = None) -> Callable:
        """FastAPI dependency enforcing ``permission``."""

        async def dependency(request: Request, response: Response) -> ApiKey:
            return await self.process_request(request, response, permission)

        return dependency

    def _extract_api_key(self, request: Request) -> Optional[str]:
        """X-API-Key header, then Bearer token, then ``api_key`` query parameter."""
        header_key = request.headers.get("X-API-Key")
        if header_key:
            return header_key

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            return auth_header[7:]

        return request.query_params.get("api_key")
