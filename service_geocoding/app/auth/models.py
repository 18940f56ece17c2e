"""
API key data models for the geocoding service.
"""

from typing import Dict, List, Optional
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ApiKeyPlan(str, Enum):
    """Subscription plans."""
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class ApiKeyStatus(str, Enum):
    """API key lifecycle states."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    REVOKED = "revoked"


class ApiPermission(str, Enum):
    """Permissions grantable to an API key."""
    GEOCODING_READ = "geocoding:read"
    DISTANCE_READ = "distance:read"
    ADMIN_READ = "admin:read"
    ADMIN_WRITE = "admin:write"


class RateLimit(BaseModel):
    """Request limits per window."""
    requests_per_minute: int
    requests_per_hour: int
    requests_per_day: int
    requests_per_month: int


class UsageRecord(BaseModel):
    """Request counters for one API key."""
    total_requests: int = 0
    requests_today: int = 0
    requests_this_month: int = 0
    last_reset_date: datetime


RATE_LIMIT_PLANS: Dict[ApiKeyPlan, RateLimit] = {
    ApiKeyPlan.FREE: RateLimit(
        requests_per_minute=10,
        requests_per_hour=100,
        requests_per_day=1000,
        requests_per_month=10000
    ),
    ApiKeyPlan.BASIC: RateLimit(
        requests_per_minute=60,
        requests_per_hour=1000,
        requests_per_day=10000,
        requests_per_month=100000
    ),
    ApiKeyPlan.PREMIUM: RateLimit(
        requests_per_minute=300,
        requests_per_hour=5000,
        requests_per_day=50000,
        requests_per_month=1000000
    ),
    ApiKeyPlan.ENTERPRISE: RateLimit(
        requests_per_minute=1000,
        requests_per_hour=20000,
        requests_per_day=200000,
        requests_per_month=5000000
    ),
}

DEFAULT_PERMISSIONS: Dict[ApiKeyPlan, List[ApiPermission]] = {
    ApiKeyPlan.FREE: [ApiPermission.GEOCODING_READ],
    ApiKeyPlan.BASIC: [ApiPermission.GEOCODING_READ, ApiPermission.DISTANCE_READ],
    ApiKeyPlan.PREMIUM: [ApiPermission.GEOCODING_READ, ApiPermission.DISTANCE_READ],
    ApiKeyPlan.ENTERPRISE: [
        ApiPermission.GEOCODING_READ,
        ApiPermission.DISTANCE_READ,
        ApiPermission.ADMIN_READ
    ],
}

ALL_PERMISSIONS: List[ApiPermission] = list(ApiPermission)


class ApiKey(BaseModel):
    """Stored API key record, keyed by its secret."""
    id: str
    key: str
    name: str
    description: Optional[str] = None
    plan: ApiKeyPlan
    status: ApiKeyStatus = ApiKeyStatus.ACTIVE
    permissions: List[ApiPermission]
    rate_limit: RateLimit
    usage: UsageRecord
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None


class CreateApiKeyRequest(BaseModel):
    """Request model for API key creation."""
    name: str = Field(..., min_length=1, description="Descriptive name for the API key")
    description: Optional[str] = Field(None, description="Optional description")
    plan: ApiKeyPlan = Field(..., description="Plan determining rate limits")
    permissions: List[ApiPermission] = Field(default_factory=list, description="Defaults to the plan's permissions")
    expires_in_days: Optional[int] = Field(None, gt=0, description="Days until expiration")


class IssuedApiKey(BaseModel):
    """Key material returned once, at creation."""
    id: str
    key: str
    name: str
    plan: ApiKeyPlan
    permissions: List[ApiPermission]
    rate_limit: RateLimit
    created_at: datetime
    expires_at: Optional[datetime] = None
    warning: str = "Store this API key securely. It will not be shown again."


class ApiKeySummary(BaseModel):
    """API key without its secret."""
    id: str
    name: str
    description: Optional[str] = None
    plan: ApiKeyPlan
    status: ApiKeyStatus
    permissions: List[ApiPermission]
    rate_limit: RateLimit
    usage: UsageRecord
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None


class ApiKeyList(BaseModel):
    """Response model for key listing."""
    api_keys: List[ApiKeySummary] = Field(default_factory=list)
    total: int = 0


class QuotaDecision(BaseModel):
    """Outcome of a quota check."""
    allowed: bool
    remaining: int
    reset_time: datetime
    limit: Optional[int] = None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
