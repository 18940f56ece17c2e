"""
API key lifecycle: issue, validate, revoke and permission checks.
"""

import secrets
import string
import uuid
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from shared.logging import get_logger, mask_secret
from shared.metrics import MetricsCollector
from ..cache.cache_aside import CacheAside
from .models import (
    ALL_PERMISSIONS,
    DEFAULT_PERMISSIONS,
    RATE_LIMIT_PLANS,
    ApiKey,
    ApiKeyList,
    ApiKeyPlan,
    ApiKeyStatus,
    ApiPermission,
    IssuedApiKey,
    UsageRecord,
    utc_now,
)

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


class KeyAuthority:
    """Issues and validates API keys stored under ``apikey:<secret>``.

    The secret itself is the lookup key, so keys cannot be found by id.
    Records are never deleted; revocation is a status transition.
    """

    API_KEY_PREFIX = "eon_"
    CACHE_PREFIX = "apikey:"

    def __init__(self, cache: CacheAside, clock: Callable[[], datetime] = utc_now,
                 metrics: Optional[MetricsCollector] = None):
        self.cache = cache
        self._clock = clock
        self.metrics = metrics
        self.logger = get_logger("geocoding.key_authority")

    def generate_secret(self) -> str:
        """Prefix, base36 millisecond timestamp and 32 random bytes in hex."""
        timestamp = _to_base36(int(self._clock().timestamp() * 1000))
        return f"{self.API_KEY_PREFIX}{timestamp}_{secrets.token_hex(32)}"

    def _cache_key(self, secret: str) -> str:
        return f"{self.CACHE_PREFIX}{secret}"

    async def _save(self, api_key: ApiKey) -> bool:
        # ttl 0: key records never expire in the store
        return await self.cache.set(self._cache_key(api_key.key), api_key, 0)

    async def get(self, secret: str) -> Optional[ApiKey]:
        """Read a stored record regardless of status, for audit."""
        if not secret or not secret.startswith(self.API_KEY_PREFIX):
            return None
        return await self.cache.get(self._cache_key(secret), ApiKey)

    async def create(self, name: str, plan: ApiKeyPlan,
                     permissions: Optional[Iterable[ApiPermission]] = None,
                     expires_in_days: Optional[int] = None,
                     description: Optional[str] = None) -> IssuedApiKey:
        """Issue a new key. The returned secret is not retrievable again."""
        plan = ApiKeyPlan(plan)
        now = self._clock()
        expires_at = now + timedelta(days=expires_in_days) if expires_in_days else None

        granted: List[ApiPermission] = []
        for permission in (permissions or DEFAULT_PERMISSIONS[plan]):
            permission = ApiPermission(permission)
            if permission not in granted:
                granted.append(permission)

        api_key = ApiKey(
            id=str(uuid.uuid4()),
            key=self.generate_secret(),
            name=name,
            description=description,
            plan=plan,
            status=ApiKeyStatus.ACTIVE,
            permissions=granted,
            rate_limit=RATE_LIMIT_PLANS[plan].model_copy(),
            usage=UsageRecord(last_reset_date=now),
            created_at=now,
            updated_at=now,
            expires_at=expires_at,
        )

        if not await self._save(api_key):
            self.logger.warning("API key created but not persisted", api_key_id=api_key.id)

        self.logger.info("Created API key", api_key_id=api_key.id, plan=plan.value)

        return IssuedApiKey(
            id=api_key.id,
            key=api_key.key,
            name=api_key.name,
            plan=api_key.plan,
            permissions=api_key.permissions,
            rate_limit=api_key.rate_limit,
            created_at=api_key.created_at,
            expires_at=api_key.expires_at,
        )

    async def validate(self, secret: str) -> Optional[ApiKey]:
        """Return the active key for ``secret`` or None.

        Expired keys are revoked as a side effect. A successful validation
        persists ``last_used_at`` before returning.
        """
        if not secret or not secret.startswith(self.API_KEY_PREFIX):
            self._record_validation("malformed")
            return None

        api_key = await self.cache.get(self._cache_key(secret), ApiKey)

        if api_key is None:
            self.logger.warning("API key not found", api_key=mask_secret(secret))
            self._record_validation("not_found")
            return None

        if api_key.status != ApiKeyStatus.ACTIVE:
            self.logger.warning("API key is not active", api_key=mask_secret(secret),
                                status=api_key.status.value)
            self._record_validation("inactive")
            return None

        now = self._clock()
        if api_key.expires_at and now > api_key.expires_at:
            self.logger.warning("API key has expired", api_key=mask_secret(secret))
            await self.revoke(secret)
            self._record_validation("expired")
            return None

        api_key.last_used_at = now
        await self._save(api_key)

        self._record_validation("valid")
        return api_key

    def has_permission(self, api_key: ApiKey, permission: ApiPermission) -> bool:
        return ApiPermission(permission) in api_key.permissions

    async def revoke(self, secret: str) -> bool:
        """Transition a key to revoked. False only when the key does not exist."""
        api_key = await self.get(secret)
        if api_key is None:
            return False

        api_key.status = ApiKeyStatus.REVOKED
        api_key.updated_at = self._clock()
        await self._save(api_key)

        self.logger.info("Revoked API key", api_key_id=api_key.id)
        return True

    async def list_keys(self) -> ApiKeyList:
        """Keys are indexed by secret only, so there is nothing to enumerate."""
        return ApiKeyList(api_keys=[], total=0)

    async def create_master_key(self) -> IssuedApiKey:
        """Enterprise key with every permission. Callers gate this to non-production."""
        issued = await self.create(
            name="Master Key",
            plan=ApiKeyPlan.ENTERPRISE,
            permissions=ALL_PERMISSIONS,
            description="Administrator master key",
        )
        self.logger.info("Created master API key", api_key_id=issued.id)
        return issued

    def _record_validation(self, status: str):
        if self.metrics:
            self.metrics.increment_counter("api_key_validations_total", status=status)
