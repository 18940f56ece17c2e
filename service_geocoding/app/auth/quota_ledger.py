"""
Per-key daily usage counters and fixed-window quota checks.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..cache.cache_aside import CacheAside
from .key_authority import KeyAuthority
from .models import ApiKey, QuotaDecision, UsageRecord, utc_now

USAGE_TTL_SECONDS = 24 * 60 * 60
FAIL_OPEN_REMAINING = 1000


def next_utc_midnight(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)


class QuotaLedger:
    """Fixed-window daily quota over ``usage:<key id>:<UTC date>`` records.

    The record's 24h TTL is the only reset mechanism. Only the daily window
    is enforced; the minute, hour and month limits on ``RateLimit`` are
    carried for future windows, which would be added to
    :meth:`_enforced_windows`.

    ``record`` writes the usage record and then the API key without a
    transaction, so concurrent requests for one key may under-count. Checks
    fail open on any error.
    """

    USAGE_PREFIX = "usage:"

    def __init__(self, cache: CacheAside, clock: Callable[[], datetime] = utc_now,
                 metrics: Optional[MetricsCollector] = None):
        self.cache = cache
        self._clock = clock
        self.metrics = metrics
        self.logger = get_logger("geocoding.quota_ledger")

    def usage_key(self, api_key_id: str, now: datetime) -> str:
        return f"{self.USAGE_PREFIX}{api_key_id}:{now.date().isoformat()}"

    async def _load_usage(self, api_key: ApiKey, now: datetime) -> Optional[UsageRecord]:
        return await self.cache.get(self.usage_key(api_key.id, now), UsageRecord)

    async def check(self, api_key: ApiKey) -> QuotaDecision:
        """Decide whether ``api_key`` may make another request today."""
        now = self._clock()
        try:
            usage = await self._load_usage(api_key, now)
            if usage is None:
                usage = UsageRecord(last_reset_date=now)

            decision = None
            for window in self._enforced_windows():
                decision = window(api_key, usage, now)
                if not decision.allowed:
                    break
            return decision
        except Exception as e:
            self.logger.error("Error checking rate limit", api_key_id=api_key.id, error=str(e))
            return QuotaDecision(
                allowed=True,
                remaining=FAIL_OPEN_REMAINING,
                reset_time=now,
                limit=api_key.rate_limit.requests_per_day,
            )

    def _enforced_windows(self) -> List[Callable[[ApiKey, UsageRecord, datetime], QuotaDecision]]:
        """Window checks applied in order; the first denial wins."""
        return [self._check_daily]

    def _check_daily(self, api_key: ApiKey, usage: UsageRecord, now: datetime) -> QuotaDecision:
        limit = api_key.rate_limit.requests_per_day

        if usage.requests_today >= limit:
            self.logger.warning("Daily quota exceeded", api_key_id=api_key.id,
                                requests_today=usage.requests_today, limit=limit)
            if self.metrics:
                self.metrics.increment_counter("quota_denials_total", plan=api_key.plan.value)
            return QuotaDecision(
                allowed=False,
                remaining=0,
                reset_time=next_utc_midnight(now),
                limit=limit,
            )

        return QuotaDecision(
            allowed=True,
            remaining=limit - usage.requests_today,
            reset_time=now + timedelta(hours=24),
            limit=limit,
        )

    async def record(self, api_key: ApiKey) -> None:
        """Count one request against today's record and mirror it onto the key."""
        now = self._clock()
        try:
            usage = await self._load_usage(api_key, now)
            if usage is None:
                usage = self._start_day(api_key, now)

            usage.total_requests += 1
            usage.requests_today += 1
            usage.requests_this_month += 1

            await self.cache.set(self.usage_key(api_key.id, now), usage, USAGE_TTL_SECONDS)

            api_key.usage = usage
            await self.cache.set(f"{KeyAuthority.CACHE_PREFIX}{api_key.key}", api_key, 0)
        except Exception as e:
            self.logger.error("Error recording usage", api_key_id=api_key.id, error=str(e))

    def _start_day(self, api_key: ApiKey, now: datetime) -> UsageRecord:
        """Fresh daily record, carrying lifetime and same-month totals from the key."""
        previous = api_key.usage
        same_month = (previous.last_reset_date.year, previous.last_reset_date.month) == (now.year, now.month)
        return UsageRecord(
            total_requests=previous.total_requests,
            requests_today=0,
            requests_this_month=previous.requests_this_month if same_month else 0,
            last_reset_date=now,
        )
