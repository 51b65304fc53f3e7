"""
Quota Manager Service

Tracks daily metadata-registry usage so enrichment stops before the
registry starts refusing requests.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from ..config import get_settings
from ..core.exceptions import QuotaExceededError
from ..core.logging import get_logger

logger = get_logger(__name__)

REGISTRY_API = "tmdb"


class QuotaManager:
    """
    Daily request counters, in Redis when available, else process-local.

    Keys are `quota:{api}:{YYYY-MM-DD}` with a 24 hour TTL.
    """

    def __init__(self, redis_client=None, limits: Optional[Dict[str, int]] = None):
        self.settings = get_settings()
        self.redis = redis_client
        self.limits = limits or {REGISTRY_API: self.settings.tmdb_daily_quota}
        self._local_usage: Dict[str, int] = {}

    def _get_today_key(self, api_name: str) -> str:
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return f"quota:{api_name}:{today}"

    async def get_usage(self, api_name: str) -> int:
        """Get current usage for an API."""
        key = self._get_today_key(api_name)

        if self.redis:
            try:
                usage = await self.redis.get(key)
                return int(usage) if usage else 0
            except Exception as e:
                logger.warning("redis_get_quota_failed", error=str(e))

        return self._local_usage.get(key, 0)

    async def can_make_request(self, api_name: str, cost: int = 1) -> bool:
        if api_name not in self.limits:
            return True
        return (await self.get_usage(api_name) + cost) <= self.limits[api_name]

    async def record_usage(self, api_name: str, cost: int = 1):
        """
        Record API usage.

        Args:
            api_name: Tracked API name
            cost: Request cost in units
        """
        key = self._get_today_key(api_name)

        if self.redis:
            try:
                await self.redis.incrby(key, cost)
                await self.redis.expire(key, 86400)
                return
            except Exception as e:
                logger.warning("redis_record_quota_failed", error=str(e))

        self._local_usage[key] = self._local_usage.get(key, 0) + cost

    async def require_quota(self, api_name: str, cost: int = 1):
        """Raise QuotaExceededError if `cost` more units would pass the limit."""
        if not await self.can_make_request(api_name, cost):
            logger.error(
                "quota_exceeded",
                api=api_name,
                current=await self.get_usage(api_name),
                limit=self.limits.get(api_name, 0),
                requested=cost
            )
            raise QuotaExceededError(api_name)

    async def get_all_quotas(self) -> dict:
        """Quota status for every tracked API."""
        result = {}
        for api_name, limit in self.limits.items():
            current = await self.get_usage(api_name)
            result[api_name] = {
                "used": current,
                "limit": limit,
                "remaining": max(0, limit - current),
                "percentage": round((current / limit) * 100, 1) if limit else 100.0,
            }
        return result
