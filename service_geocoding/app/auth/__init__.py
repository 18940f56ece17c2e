"""
API key authorization and quota accounting.
"""

from .key_authority import KeyAuthority
from .middleware import ApiKeyAuthMiddleware
from .quota_ledger import QuotaLedger

__all__ = ["KeyAuthority", "QuotaLedger", "ApiKeyAuthMiddleware"]
