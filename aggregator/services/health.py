"""
Source Health Tracker

Per-provider circuit breaker: consecutive failure counters and time-boxed
exclusion windows.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from ..core.logging import get_logger

logger = get_logger(__name__)


class HealthState(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    OPEN = "open"


@dataclass
class ProviderHealth:
    consecutive_failures: int = 0
    excluded_until: float = 0.0


class HealthRegistry:
    """
    Tracks provider health for the request racer.

    - 2 consecutive failures → DEGRADED, excluded for 30 seconds
    - 3+ consecutive failures → OPEN, excluded for 5 minutes (re-armed on
      every further failure)
    - any success → HEALTHY, counters reset

    Process-lifetime state only.
    """

    DEGRADED_THRESHOLD = 2
    DEGRADED_WINDOW_SECONDS = 30
    OPEN_THRESHOLD = 3
    OPEN_WINDOW_SECONDS = 300

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._health: Dict[str, ProviderHealth] = {}

    def _get(self, provider_key: str) -> ProviderHealth:
        if provider_key not in self._health:
            self._health[provider_key] = ProviderHealth()
        return self._health[provider_key]

    def record_success(self, provider_key: str):
        """Reset the provider to healthy."""
        health = self._get(provider_key)
        if health.consecutive_failures > 0:
            logger.info(
                "provider_recovered",
                provider=provider_key,
                after_failures=health.consecutive_failures
            )
        health.consecutive_failures = 0
        health.excluded_until = 0.0

    def record_failure(self, provider_key: str, now: Optional[float] = None):
        """Count a failure and open the exclusion window when a threshold is hit."""
        now = self._clock() if now is None else now
        health = self._get(provider_key)
        health.consecutive_failures += 1

        if health.consecutive_failures >= self.OPEN_THRESHOLD:
            health.excluded_until = now + self.OPEN_WINDOW_SECONDS
            logger.warning(
                "provider_circuit_open",
                provider=provider_key,
                failures=health.consecutive_failures,
                excluded_seconds=self.OPEN_WINDOW_SECONDS
            )
        elif health.consecutive_failures >= self.DEGRADED_THRESHOLD:
            health.excluded_until = now + self.DEGRADED_WINDOW_SECONDS
            logger.info(
                "provider_degraded",
                provider=provider_key,
                failures=health.consecutive_failures,
                excluded_seconds=self.DEGRADED_WINDOW_SECONDS
            )

    def is_eligible(self, provider_key: str, now: Optional[float] = None) -> bool:
        """True unless the provider is inside an exclusion window."""
        now = self._clock() if now is None else now
        health = self._health.get(provider_key)
        return health is None or health.excluded_until <= now

    def state(self, provider_key: str, now: Optional[float] = None) -> HealthState:
        health = self._health.get(provider_key)
        if health is None or health.consecutive_failures < self.DEGRADED_THRESHOLD:
            return HealthState.HEALTHY
        if health.consecutive_failures >= self.OPEN_THRESHOLD:
            return HealthState.OPEN
        return HealthState.DEGRADED

    def failures(self, provider_key: str) -> int:
        health = self._health.get(provider_key)
        return health.consecutive_failures if health else 0

    def snapshot(self, now: Optional[float] = None) -> Dict[str, dict]:
        """Health of every provider seen so far (for the ops surface)."""
        now = self._clock() if now is None else now
        return {
            key: {
                "state": self.state(key, now).value,
                "consecutive_failures": health.consecutive_failures,
                "eligible": health.excluded_until <= now,
                "excluded_for_seconds": max(0.0, round(health.excluded_until - now, 1)),
            }
            for key, health in self._health.items()
        }


# Singleton instance
_health_registry: Optional[HealthRegistry] = None


def get_health_registry() -> HealthRegistry:
    """Get singleton HealthRegistry instance."""
    global _health_registry
    if _health_registry is None:
        _health_registry = HealthRegistry()
    return _health_registry
